"""
Security utilities for Codedrop.
Provides password hashing, filename sanitization, and security event logging.
"""
import logging
import re
from typing import Optional
from urllib.parse import quote

import bcrypt

from errors import PasswordHashError

security_logger = logging.getLogger('security')

BCRYPT_ROUNDS = 10

# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72

# Stored in place of a hash when a share has no password
NO_PASSWORD = ""

# Dangerous patterns in filenames
DANGEROUS_PATTERNS = [
    r'\.\.', r'/', r'\\', r'\x00',  # Path traversal
    r'<', r'>', r':', r'"', r'\|', r'\?', r'\*'  # Windows special chars
]


def _encode(password: str) -> bytes:
    return password.encode('utf-8')[:MAX_PASSWORD_BYTES]


def hash_password(password: Optional[str]) -> str:
    """
    Hash a password with bcrypt and a fresh salt.

    Args:
        password: Plaintext password, may be empty or None

    Returns:
        The bcrypt hash, or NO_PASSWORD when no password was given

    Raises:
        PasswordHashError: If bcrypt fails
    """
    if not password:
        return NO_PASSWORD
    try:
        hashed = bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    except (ValueError, TypeError) as e:
        raise PasswordHashError("Failed to hash password") from e
    return hashed.decode('utf-8')


def verify_password(candidate: Optional[str], stored: str) -> bool:
    """
    Check a candidate password against a stored hash.

    Always fails against NO_PASSWORD, even for an empty candidate,
    so a share created without a password can never be unlocked.

    Raises:
        PasswordHashError: If the stored hash is malformed
    """
    if stored == NO_PASSWORD or not candidate:
        return False
    try:
        return bcrypt.checkpw(_encode(candidate), stored.encode('utf-8'))
    except (ValueError, TypeError) as e:
        raise PasswordHashError("Failed to verify password") from e


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename to prevent path traversal and header injection.

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    if not filename:
        return "unnamed_file"

    # Remove dangerous patterns
    for pattern in DANGEROUS_PATTERNS:
        filename = re.sub(pattern, '', filename)

    # Strip newlines so the name is safe in Content-Disposition
    filename = re.sub(r'[\r\n]', '', filename)

    # Remove leading/trailing whitespace and dots
    filename = filename.strip('. \t')

    if len(filename) > 255:
        filename = filename[:200] + filename[-50:]

    return filename or "unnamed_file"


def log_security_event(event_type: str, details: dict):
    """Log a security-relevant event."""
    security_logger.warning(f"SECURITY_EVENT: {event_type} - {details}")


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header value.

    Header values must be latin-1, so non-ASCII names get an ASCII
    fallback plus an RFC 5987 filename* parameter.

    Args:
        filename: Already sanitized filename

    Returns:
        Header value
    """
    ascii_name = filename.encode('ascii', 'ignore').decode('ascii').strip('. \t') or "download"
    if ascii_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
