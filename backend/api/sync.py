"""Sync API endpoints."""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from config import settings
from schemas import SyncRunResponse
from services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])

# Dependency injection for testing
_sync_service_override: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    """Get SyncService instance, allowing for test overrides."""
    if _sync_service_override is not None:
        return _sync_service_override
    return SyncService()


def set_sync_service_override(service: Optional[SyncService]) -> None:
    """Set a SyncService override for testing."""
    global _sync_service_override
    _sync_service_override = service


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>`` when a secret is configured."""
    expected = settings.CRON_SECRET
    if not expected:
        return
    if not authorization or not secrets.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


def parse_org_id(x_org_id: Optional[str] = Header(default=None, alias="X-Org-Id")) -> int:
    """Read the organization id from the ``X-Org-Id`` header."""
    if x_org_id is None or not x_org_id.strip():
        raise HTTPException(status_code=400, detail="Missing X-Org-Id header")
    try:
        org_id = int(x_org_id.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Org-Id header")
    if org_id <= 0:
        raise HTTPException(status_code=400, detail="Invalid X-Org-Id header")
    return org_id


@router.post("", response_model=SyncRunResponse, dependencies=[Depends(verify_cron_secret)])
async def trigger_sync(
    org_id: int = Depends(parse_org_id),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Sync every source for one organization.

    Always returns 200 with the run summary once the orchestrator finishes.
    Per-source failures are reported in ``results``, not as HTTP errors.

    Raises:
        HTTPException:
            - 400 Bad Request: Missing or invalid X-Org-Id
            - 401 Unauthorized: Bearer token does not match CRON_SECRET
            - 500 Internal Server Error: Unexpected sync error
    """
    try:
        summary = await sync_service.run_sync(org_id)
    except Exception:
        # Never expose str(e)
        logger.error("Unexpected error during sync for org %s", org_id, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred during sync.",
        )
    return SyncRunResponse.model_validate(summary, from_attributes=True)
