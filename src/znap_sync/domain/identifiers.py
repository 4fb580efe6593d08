"""Identifier generation and validation."""

import re
from uuid import uuid4

_UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_id() -> str:
    """Return a random version-4 UUID string."""
    return str(uuid4())


def is_valid_id(candidate: object) -> bool:
    """Return True if the candidate is a version-4 UUID string."""
    if not isinstance(candidate, str):
        return False
    return _UUID_V4_PATTERN.match(candidate) is not None
