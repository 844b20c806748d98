"""Public decision endpoint. The magic-link token is the only credential."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from proofdesk.core.rate_limit import rate_limit, resolve_client_ip
from proofdesk.decisions.service import (
    DecisionAlreadySubmittedError,
    DecisionError,
    MagicLinkExpiredError,
    MagicLinkNotFoundError,
    OrderNotFoundError,
    submit_decision,
)
from proofdesk.notifications.notifier import Notifier, get_notifier
from proofdesk.schemas.decisions import DecisionRequest, DecisionResponse
from proofdesk.storage.db import get_session


router = APIRouter(prefix="/actions", tags=["decisions"])


@router.post(
    "/submit",
    response_model=DecisionResponse,
    dependencies=[Depends(rate_limit("customer_submit", "customer_submit"))],
)
def submit(
    payload: DecisionRequest,
    request: Request,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> DecisionResponse:
    try:
        submit_decision(
            session,
            token=payload.token,
            decision=payload.decision,
            note=payload.note,
            notifier=notifier,
            ip=resolve_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except MagicLinkNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired link") from exc
    except MagicLinkExpiredError as exc:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="This link has expired") from exc
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    except DecisionAlreadySubmittedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Decision already submitted") from exc
    except DecisionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return DecisionResponse()
