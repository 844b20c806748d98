"""Token hashing and constant-time comparison helpers."""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from typing import Tuple


MAGIC_TOKEN_BYTES = 32
_MAGIC_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")


def hash_token(secret_value: str) -> str:
    return hashlib.sha256(secret_value.encode("utf-8")).hexdigest()


def generate_magic_token() -> Tuple[str, str]:
    """Generate a magic-link token and return (raw_token, token_hash)."""

    raw_token = secrets.token_hex(MAGIC_TOKEN_BYTES)
    return raw_token, hash_token(raw_token)


def is_magic_token_format(value: str) -> bool:
    return bool(_MAGIC_TOKEN_RE.match(value or ""))


def constant_time_equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
