"""Customer proof portal reached through a magic link."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from proofdesk.core.logger import get_logger
from proofdesk.core.rate_limit import rate_limit
from proofdesk.orders.status import is_decided
from proofdesk.proofs.links import MagicLinkExpiredError, MagicLinkNotFoundError, as_utc, resolve_magic_link
from proofdesk.schemas.portal import PortalBranding, PortalFile, PortalOrder, PortalResponse, PortalVersion
from proofdesk.settings.service import get_app_settings
from proofdesk.storage.db import get_session
from proofdesk.storage.models import Order
from proofdesk.storage.security import is_magic_token_format


router = APIRouter(tags=["portal"])
logger = get_logger("proofdesk.portal")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else None


def _options(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


@router.get(
    "/p/{token}",
    response_model=PortalResponse,
    dependencies=[Depends(rate_limit("proof_view", "proof_view"))],
)
def view_proof(token: str, session: Session = Depends(get_session)) -> PortalResponse:
    if not is_magic_token_format(token):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    now = datetime.now(timezone.utc)
    try:
        link = resolve_magic_link(session, token=token, now=now)
    except MagicLinkNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found") from exc
    except MagicLinkExpiredError as exc:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="This link has expired") from exc

    order = session.get(Order, link.order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    order.customer_last_viewed_at = now
    order.customer_last_activity_at = now
    app_settings = get_app_settings(session)
    session.commit()
    logger.info("proof_viewed", order_id=order.id)

    versions = [
        PortalVersion(
            id=version.id,
            version_number=version.version_number,
            staff_note=version.staff_note,
            created_at=_iso(version.created_at),
            files=[
                PortalFile(
                    id=item.id,
                    filename=item.filename,
                    mime_type=item.mime_type,
                    url=f"/proofs/files/{item.id}",
                )
                for item in version.files
            ],
        )
        for version in order.versions
    ]
    return PortalResponse(
        order=PortalOrder(
            id=order.id,
            order_number=order.order_number,
            customer_name=order.customer_name,
            status=order.status,
            product_name=order.product_name,
            sku=order.sku,
            quantity=order.quantity,
            product_image_url=order.product_image_url,
            customization_options=_options(order.customization_options_json),
        ),
        versions=versions,
        branding=PortalBranding(
            company_name=app_settings.company_name,
            accent_color=app_settings.accent_color,
            logo_data_url=app_settings.logo_data_url,
        ),
        decided=is_decided(order.status),
        expires_at=_iso(as_utc(link.expires_at)),
    )
