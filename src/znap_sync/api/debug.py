"""Diagnostics endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from znap_sync.domain.errors import RemoteError

if TYPE_CHECKING:
    from znap_sync.containers import AppContainer

router = APIRouter(prefix="/debug", tags=["debug"])


def _get_debug_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.debug_token


async def require_debug_token(
    x_debug_token: str | None = Header(default=None),
    debug_token: str = Depends(_get_debug_token),
) -> None:
    """Ensure requests include a valid debug token."""
    if not x_debug_token or x_debug_token != debug_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/ids", dependencies=[Depends(require_debug_token)])
async def id_audit(request: Request) -> dict[str, object]:
    """Return which cached cameras still use legacy ids."""
    container: AppContainer = request.app.state.container
    return {"cameras": container.sync_service.id_audit()}


@router.post("/probe", dependencies=[Depends(require_debug_token)])
async def probe(request: Request) -> dict[str, object]:
    """Re-run the backend availability probe now."""
    container: AppContainer = request.app.state.container
    available = await container.availability_service.check()
    return {"available": available, "status": container.availability_service.status()}


@router.get("/remote/cameras", dependencies=[Depends(require_debug_token)])
async def remote_cameras(request: Request) -> dict[str, object]:
    """List camera rows straight from the backend."""
    container: AppContainer = request.app.state.container
    try:
        cameras = await container.sync_service.remote.list_cameras()
    except RemoteError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
        ) from exc
    return {"cameras": cameras, "count": len(cameras)}


@router.post("/storage/clear", dependencies=[Depends(require_debug_token)])
async def clear_storage(request: Request) -> dict[str, str]:
    """Delete every locally cached camera."""
    container: AppContainer = request.app.state.container
    await container.camera_store.clear()
    return {"status": "ok"}
