"""Administrative endpoints guarded by the shared ``ADMIN_KEY`` secret."""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ratewall.audit import UNBAN, AuditLog
from ratewall.config import Settings
from ratewall.rate_limit import SlidingWindow
from ratewall.store import AccessStore
from ratewall.utils import normalize_ip

LOGGER = logging.getLogger(__name__)


class AdminError(RuntimeError):
    """Base class for failures surfaced directly as the admin response."""

    status_code = 500
    default_message = "Admin request failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AdminNotConfiguredError(AdminError):
    status_code = 500
    default_message = "ADMIN_KEY not configured on server."


class UnauthorizedError(AdminError):
    status_code = 401
    default_message = "Unauthorized. Provide valid admin key in X-Admin-Key header."


class InvalidRequestError(AdminError):
    status_code = 400
    default_message = "Provide ip in request body to unban."


class NotBannedError(AdminError):
    status_code = 404


def require_admin(admin_key: Optional[str], provided_key: Optional[str]) -> None:
    """Fail closed when no key is configured; reject any mismatch."""

    if not admin_key:
        raise AdminNotConfiguredError()
    if not provided_key or not hmac.compare_digest(
        provided_key.encode("utf-8"), admin_key.encode("utf-8")
    ):
        raise UnauthorizedError()


def unban(
    store: AccessStore,
    audit: AuditLog,
    *,
    admin_key: Optional[str],
    ip: Optional[str],
    provided_key: Optional[str],
) -> str:
    """Lift a ban and return the normalized IP.

    The sliding window for the IP is left untouched.
    """

    require_admin(admin_key, provided_key)
    if not ip or not ip.strip():
        raise InvalidRequestError()
    target = normalize_ip(ip)
    if not store.unban(target):
        raise NotBannedError(f"IP {target} not found in ban list.")
    audit.write(UNBAN, target)
    LOGGER.info("ip unbanned", extra={"client_ip": target})
    return target


async def admin_error_handler(request: Request, exc: AdminError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


class UnbanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ip: Optional[str] = None
    admin_key: Optional[str] = Field(None, alias="adminKey")


def get_store(request: Request) -> AccessStore:
    return request.app.state.store


def get_audit(request: Request) -> AuditLog:
    return request.app.state.audit


def get_window(request: Request) -> SlidingWindow:
    return request.app.state.window


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/unban")
async def admin_unban(
    payload: Optional[UnbanRequest] = Body(None),
    ip: Optional[str] = Query(None),
    admin_key: Optional[str] = Query(None, alias="adminKey"),
    x_admin_key: Optional[str] = Header(None),
    store: AccessStore = Depends(get_store),
    audit: AuditLog = Depends(get_audit),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Remove an IP from the ban list."""

    body = payload or UnbanRequest()
    target = unban(
        store,
        audit,
        admin_key=settings.admin_key,
        ip=body.ip or ip,
        provided_key=x_admin_key or body.admin_key or admin_key,
    )
    return {"success": True, "message": f"IP {target} unbanned."}


@router.get("/banned")
async def admin_banned(
    admin_key: Optional[str] = Query(None, alias="adminKey"),
    x_admin_key: Optional[str] = Header(None),
    store: AccessStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    require_admin(settings.admin_key, x_admin_key or admin_key)
    return {"success": True, "banned": store.banned_snapshot()}


@router.get("/stats")
async def admin_stats(
    admin_key: Optional[str] = Query(None, alias="adminKey"),
    x_admin_key: Optional[str] = Header(None),
    store: AccessStore = Depends(get_store),
    window: SlidingWindow = Depends(get_window),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    require_admin(settings.admin_key, x_admin_key or admin_key)
    return {
        "success": True,
        "activeIps": window.active_ips,
        "bannedCount": len(store.banned_snapshot()),
        "whitelistedCount": len(store.whitelist_snapshot()),
    }
