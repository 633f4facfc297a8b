"""
Tenant admin routes.

``POST /tenants/{tenant_id}/account/sync`` re-reads the tenant's routing
account id and display name from the provider. Same ``X-Admin-Key`` guard as
the credential routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from pagewire.api.routes.credentials import require_admin_key
from pagewire.core.exceptions import (
    AccountLinkError,
    CredentialError,
    PagewireError,
    TenantNotFound,
)
from pagewire.core.logging.logger import get_logger
from pagewire.tenants.linker import TenantAccountLinker

logger = get_logger(__name__)

router = APIRouter(
    prefix="/tenants",
    tags=["Tenants"],
    dependencies=[Depends(require_admin_key)],
)


class TenantAccountResponse(BaseModel):
    tenant_id: str
    platform: str
    page_id: str
    account_id: str
    display_name: str


def _linker(request: Request) -> TenantAccountLinker:
    linker = getattr(request.app.state, "tenant_linker", None)
    if linker is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return linker


@router.post("/{tenant_id}/account/sync", response_model=TenantAccountResponse)
async def sync_tenant_account(
    tenant_id: str, linker: TenantAccountLinker = Depends(_linker)
) -> TenantAccountResponse:
    try:
        tenant = await linker.sync_account(tenant_id)
    except TenantNotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    except AccountLinkError as e:
        raise HTTPException(status_code=409, detail=e.message) from e
    except CredentialError as e:
        raise HTTPException(
            status_code=409, detail="Owner re-authorization required"
        ) from e
    except PagewireError as e:
        logger.error(f"Account sync failed for {tenant_id}: {e.message}")
        raise HTTPException(status_code=502, detail="Account lookup failed") from e

    return TenantAccountResponse(
        tenant_id=tenant.tenant_id,
        platform=tenant.platform.value,
        page_id=tenant.page_id,
        account_id=tenant.account_id,
        display_name=tenant.display_name,
    )
