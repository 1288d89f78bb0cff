"""
Slug generator tests.
"""
import re

import pytest

from utils.code_generator import ALPHABET, generate_code, is_valid_slug_length, slugify


class TestSlugify:

    @pytest.mark.parametrize("title, expected", [
        ("My Snippet", "my-snippet"),
        ("  Hello,   World!  ", "hello-world"),
        ("already-a-slug", "already-a-slug"),
        ("--Leading and trailing--", "leading-and-trailing"),
        ("a -- b", "a-b"),
        ("Tabs\tand\nnewlines", "tabs-and-newlines"),
        ("C++ & Rust 2024", "c-rust-2024"),
        ("Ünïcödé title", "ncd-title"),
        ("!!!", ""),
    ])
    def test_normalizes_titles(self, title, expected):
        assert slugify(title) == expected

    @pytest.mark.parametrize("title", [
        "My Snippet", "  --x--  ", "A  B   C", "Ünïcödé", "snake_case_name", "100% done!",
    ])
    def test_is_idempotent(self, title):
        once = slugify(title)
        assert slugify(once) == once

    def test_only_url_safe_characters(self):
        assert re.fullmatch(r"[a-z0-9-]*", slugify("Wh@t's *this* (really)?"))


class TestGenerateCode:

    def test_format(self):
        code = generate_code()
        assert re.fullmatch(r"[a-z2-9]{4}-[a-z2-9]{4}", code)
        assert all(c in ALPHABET for c in code.replace("-", ""))

    def test_is_already_a_slug(self):
        code = generate_code()
        assert slugify(code) == code
        assert is_valid_slug_length(code)

    def test_excludes_ambiguous_characters(self):
        for char in "01oil":
            assert char not in ALPHABET

    def test_codes_differ(self):
        assert len({generate_code() for _ in range(50)}) > 45


@pytest.mark.parametrize("slug, valid", [
    ("ab", False),
    ("abc", True),
    ("a" * 50, True),
    ("a" * 51, False),
])
def test_slug_length_bounds(slug, valid):
    assert is_valid_slug_length(slug) is valid
