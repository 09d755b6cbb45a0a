from __future__ import annotations

import secrets
import uuid


def generate_random_password(nbytes: int = 16) -> str:
    """Hex password; the default gives 32 characters."""

    return secrets.token_hex(nbytes)


def generate_random_uuid() -> str:
    return str(uuid.uuid4())
