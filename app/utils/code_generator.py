"""
Slug generation for share URLs.
"""
import re
import secrets
import string

# Exclude ambiguous characters: 0, 1, o, i, l
ALPHABET = "".join(c for c in string.ascii_lowercase + string.digits
                   if c not in "01oil")

MIN_SLUG_LENGTH = 3
MAX_SLUG_LENGTH = 50

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(title: str) -> str:
    """
    Turn a free-text title into a URL-safe slug.

    "  My Snippet!! " -> "my-snippet"
    """
    slug = _INVALID_CHARS.sub("", title.lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = _HYPHENS.sub("-", slug)
    return slug.strip("-")


def generate_code(length: int = 8) -> str:
    """
    Generate a random slug in format xxxx-xxxx.

    Uses the `secrets` module. Collisions are caught by the
    regular slug uniqueness check, not here.
    """
    part1 = "".join(secrets.choice(ALPHABET) for _ in range(length // 2))
    part2 = "".join(secrets.choice(ALPHABET) for _ in range(length // 2))
    return f"{part1}-{part2}"


def is_valid_slug_length(slug: str) -> bool:
    return MIN_SLUG_LENGTH <= len(slug) <= MAX_SLUG_LENGTH
