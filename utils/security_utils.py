"""
Security utilities for request validation
"""
import hmac
import re
from typing import Optional

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# Mexican RFC: 3 letters (companies) or 4 (individuals), birth/incorporation date, 3-char homoclave
RFC_PATTERN = re.compile(r'^[A-ZÑ&]{3,4}\d{6}[A-Z0-9]{3}$')


def validate_email(email: str) -> bool:
    """Validate email format"""
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_tax_id(tax_id: str) -> bool:
    """Validate an RFC (tax id) used on invoices"""
    return bool(tax_id) and RFC_PATTERN.match(tax_id.strip().upper()) is not None


def verify_admin_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Constant-time comparison of the admin key header.
    Always False when no admin key is configured.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
