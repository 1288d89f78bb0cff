"""
Public view projection and request model tests.
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from models import (
    FileContentResponse,
    FileShareCreate,
    public_code_share,
    public_file_share,
)

CODE_RECORD = {
    "id": "abc123",
    "title": "my-snippet",
    "code": "print(1)",
    "language": "python",
    "passwordHash": "$2b$10$somethingsecret",
    "hasPassword": True,
    "createdAt": "2025-06-01T12:00:00+00:00",
    "expiresAt": "2025-06-15T12:00:00+00:00",
}

FILE_RECORD = {
    "id": "def456",
    "title": "report",
    "description": "Quarterly numbers",
    "fileName": "report.pdf",
    "fileSize": 4,
    "mimeType": "application/pdf",
    "content": "JVBERg==",
    "passwordHash": "$2b$10$somethingsecret",
    "hasPassword": True,
    "createdAt": "2025-06-01T12:00:00+00:00",
    "expiresAt": "2025-06-04T12:00:00+00:00",
}


class TestPublicViews:

    def test_code_share_drops_password_hash(self):
        view = public_code_share(CODE_RECORD)
        assert "passwordHash" not in view
        assert view["hasPassword"] is True
        assert view["code"] == "print(1)"

    def test_file_share_drops_password_hash_and_content(self):
        view = public_file_share(FILE_RECORD)
        assert "passwordHash" not in view
        assert "content" not in view
        assert view["fileName"] == "report.pdf"

    def test_unknown_fields_never_leak(self):
        record = {**CODE_RECORD, "internalNote": "storage path /var/data"}
        assert "internalNote" not in public_code_share(record)
        assert "internalNote" not in public_file_share({**FILE_RECORD, "internalNote": "x"})

    def test_projection_does_not_mutate_record(self):
        record = dict(CODE_RECORD)
        public_code_share(record)
        assert record == CODE_RECORD


class TestRequestModels:

    def test_file_share_accepts_camel_case(self):
        body = FileShareCreate.model_validate({
            "fileName": "a.txt", "fileSize": 3, "mimeType": "text/plain", "content": "YWJj",
        })
        assert body.file_name == "a.txt"
        assert body.mime_type == "text/plain"
        assert body.title is None

    def test_file_share_rejects_negative_size(self):
        with pytest.raises(PydanticValidationError):
            FileShareCreate.model_validate({"fileName": "a.txt", "fileSize": -1, "content": "YWJj"})

    def test_file_content_response_serializes_camel_case(self):
        payload = FileContentResponse(file_name="a.txt", mime_type="text/plain", content="YWJj")
        assert payload.model_dump(by_alias=True) == {
            "fileName": "a.txt", "mimeType": "text/plain", "content": "YWJj",
        }
