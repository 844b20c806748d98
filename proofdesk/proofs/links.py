"""Magic-link issuing and lookup. Only token hashes are persisted."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from proofdesk.core.config import get_settings
from proofdesk.storage.models import MagicLink
from proofdesk.storage.security import generate_magic_token, hash_token


class MagicLinkNotFoundError(RuntimeError):
    pass


class MagicLinkExpiredError(RuntimeError):
    pass


@dataclass(frozen=True)
class IssuedLink:
    token: str
    url: str
    expires_at: datetime


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def build_proof_url(token: str) -> str:
    return f"{get_settings().app_public_base_url.rstrip('/')}/p/{token}"


def issue_magic_link(
    session: Session,
    *,
    order_id: str,
    now: Optional[datetime] = None,
    expiration_days: Optional[int] = None,
) -> IssuedLink:
    """Mint a fresh token for the order, replacing any earlier link.

    The raw token is only returned, never stored. The caller owns the commit.
    """

    current = now or datetime.now(timezone.utc)
    days = expiration_days or get_settings().magic_link_expiration_days
    expires_at = current + timedelta(days=days)
    token, token_hash = generate_magic_token()

    link = session.scalar(select(MagicLink).where(MagicLink.order_id == order_id))
    if link is None:
        link = MagicLink(order_id=order_id, token_hash=token_hash, expires_at=expires_at, created_at=current)
        session.add(link)
    else:
        link.token_hash = token_hash
        link.expires_at = expires_at
    link.updated_at = current
    session.flush()
    return IssuedLink(token=token, url=build_proof_url(token), expires_at=expires_at)


def resolve_magic_link(session: Session, *, token: str, now: Optional[datetime] = None) -> MagicLink:
    link = session.scalar(select(MagicLink).where(MagicLink.token_hash == hash_token(token)))
    if link is None:
        raise MagicLinkNotFoundError("Invalid or expired link")
    expires_at = as_utc(link.expires_at)
    if expires_at is not None and expires_at < (now or datetime.now(timezone.utc)):
        raise MagicLinkExpiredError("This link has expired")
    return link
