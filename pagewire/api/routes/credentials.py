"""
Manual credential routes.

Out-of-band re-authorization: exchange a freshly issued short-lived owner
token for a long-lived one, or trigger a sweep on demand. Guarded by the
``X-Admin-Key`` header and disabled entirely when no admin key is set.
"""

import hmac
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from pagewire.core.config.settings import settings
from pagewire.core.exceptions import CredentialInvalid, PagewireError
from pagewire.core.logging.logger import get_logger
from pagewire.credentials.lifecycle import TokenLifecycleManager
from pagewire.credentials.sweep import CredentialSweeper

logger = get_logger(__name__)


class OwnerTokenExchangeRequest(BaseModel):
    short_lived_token: str = Field(..., min_length=1)


class OwnerTokenExchangeResponse(BaseModel):
    owner_id: str
    refreshed_at: str


async def require_admin_key(
    request: Request, x_admin_key: str | None = Header(None)
) -> None:
    config = getattr(request.app.state, "config", None) or settings
    if not config.admin_api_key:
        raise HTTPException(status_code=503, detail="Credential admin routes are disabled")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, config.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid admin key")


router = APIRouter(
    prefix="/credentials",
    tags=["Credentials"],
    dependencies=[Depends(require_admin_key)],
)


def _lifecycle(request: Request) -> TokenLifecycleManager:
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return lifecycle


def _sweeper(request: Request) -> CredentialSweeper:
    sweeper = getattr(request.app.state, "credential_sweeper", None)
    if sweeper is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return sweeper


@router.post("/owners/{owner_id}/exchange", response_model=OwnerTokenExchangeResponse)
async def exchange_owner_token(
    owner_id: str,
    payload: OwnerTokenExchangeRequest,
    lifecycle: TokenLifecycleManager = Depends(_lifecycle),
) -> OwnerTokenExchangeResponse:
    """Store a long-lived owner token obtained from a short-lived one. Never returns the token."""
    try:
        await lifecycle.get_owner_credential(
            owner_id, bootstrap_token=payload.short_lived_token
        )
    except CredentialInvalid as e:
        raise HTTPException(status_code=401, detail="Token rejected by provider") from e
    except PagewireError as e:
        logger.error(f"Owner token exchange failed for {owner_id}: {e.message}")
        raise HTTPException(status_code=502, detail="Token exchange failed") from e

    record = await lifecycle.store.get_owner(owner_id)
    refreshed_at = record.refreshed_at if record else lifecycle.clock()
    return OwnerTokenExchangeResponse(
        owner_id=owner_id, refreshed_at=refreshed_at.isoformat()
    )


@router.post("/sweep")
async def run_sweep(sweeper: CredentialSweeper = Depends(_sweeper)) -> dict[str, Any]:
    """Run one credential sweep now and return its report."""
    report = await sweeper.run_once()
    return report.to_dict()
