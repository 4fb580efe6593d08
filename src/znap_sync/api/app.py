"""FastAPI application factory."""

import asyncio
import base64
import binascii
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status

from znap_sync.api.debug import router as debug_router
from znap_sync.api.models import (
    CreateCameraRequest,
    JoinCameraRequest,
    UploadPhotoRequest,
)
from znap_sync.app_logging import configure_logging
from znap_sync.containers import AppContainer
from znap_sync.domain.cameras import Camera
from znap_sync.domain.errors import JoinRejectedError, RemotePhotoLimitError
from znap_sync.domain.sync import UploadStatus


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        report = await state_container.camera_store.load()
        await state_container.guest_store.load()
        if report.migrated:
            logger.info("Migrated %s legacy identifiers", len(report.migrated_ids))
        await state_container.availability_service.check()
        monitor = asyncio.create_task(
            state_container.availability_service.monitor(
                state_container.settings.probe_interval_seconds
            )
        )
        yield
        monitor.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await monitor
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(debug_router)

    def _container(request: Request) -> AppContainer:
        return request.app.state.container

    def _require_camera(request: Request, camera_id: str) -> Camera:
        camera = _container(request).camera_store.find_by_id(camera_id)
        if camera is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Camera not found"
            )
        return camera

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/status")
    async def availability_status(request: Request) -> dict[str, object]:
        """Report whether remote calls are currently attempted."""
        availability = _container(request).availability_service
        return {
            "remote": availability.status(),
            "use_remote": availability.should_use_remote(),
        }

    @app.get("/cameras")
    async def list_cameras(request: Request) -> dict[str, object]:
        """Return locally cached cameras."""
        return {"cameras": list(_container(request).camera_store.cameras)}

    @app.post("/cameras", status_code=status.HTTP_201_CREATED)
    async def create_camera(
        body: CreateCameraRequest, request: Request
    ) -> dict[str, object]:
        """Create a camera, remotely when the backend is reachable."""
        state_container = _container(request)
        try:
            draft = body.to_draft(state_container.camera_store.clock())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        result = await state_container.sync_service.create_camera(draft)
        return {"camera": result.camera, "synced": result.synced, "error": result.error}

    @app.get("/cameras/{camera_id}")
    async def get_camera(camera_id: str, request: Request) -> dict[str, object]:
        """Return one cached camera."""
        return {"camera": _require_camera(request, camera_id)}

    @app.get("/cameras/{camera_id}/reveal")
    async def reveal_status(camera_id: str, request: Request) -> dict[str, object]:
        """Return whether the camera's photos are visible yet."""
        _require_camera(request, camera_id)
        return {"reveal": _container(request).sync_service.reveal_status(camera_id)}

    @app.post("/cameras/{camera_id}/sync")
    async def ensure_remote(camera_id: str, request: Request) -> dict[str, object]:
        """Make sure one camera exists on the backend."""
        result = await _container(request).sync_service.ensure_camera_exists_remotely(
            camera_id
        )
        return {"result": result}

    @app.post("/cameras/{camera_id}/photos")
    async def upload_photo(
        camera_id: str,
        body: UploadPhotoRequest,
        request: Request,
        response: Response,
    ) -> dict[str, object]:
        """Upload a base64-encoded photo for a camera."""
        try:
            image_bytes = base64.b64decode(body.image_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="image_base64 is not valid base64",
            ) from exc
        result = await _container(request).sync_service.upload_photo_with_sync(
            camera_id,
            image_bytes,
            body.mime_type,
            user_id=body.user_id,
            user_name=body.user_name,
        )
        if result.status == UploadStatus.OFFLINE:
            response.status_code = status.HTTP_202_ACCEPTED
        elif result.error_kind == RemotePhotoLimitError.kind:
            response.status_code = status.HTTP_409_CONFLICT
        elif result.status == UploadStatus.FAILED:
            response.status_code = status.HTTP_502_BAD_GATEWAY
        return {"result": result}

    @app.get("/cameras/{camera_id}/photos")
    async def list_photos(
        camera_id: str, request: Request, include_hidden: bool = False
    ) -> dict[str, object]:
        """List photos, from the backend when reachable."""
        listing = await _container(request).sync_service.list_photos(
            camera_id, include_hidden=include_hidden
        )
        return {
            "photos": listing.photos,
            "source": listing.source,
            "hidden_count": listing.hidden_count,
        }

    @app.post("/cameras/{camera_id}/join", status_code=status.HTTP_201_CREATED)
    async def join_camera(
        camera_id: str, body: JoinCameraRequest, request: Request
    ) -> dict[str, object]:
        """Record that the local user joined a camera."""
        camera = _require_camera(request, camera_id)
        try:
            session = await _container(request).guest_store.join_camera(
                camera, body.guest_name, body.email
            )
        except JoinRejectedError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail=str(exc)
            ) from exc
        return {"session": session}

    @app.get("/guests/current")
    async def current_guest(request: Request) -> dict[str, object]:
        """Return the active guest session, if any."""
        return {"session": _container(request).guest_store.current}

    @app.delete("/guests/current")
    async def sign_out_guest(request: Request) -> dict[str, str]:
        """Sign the local guest out of the current camera."""
        await _container(request).guest_store.clear_session()
        return {"status": "ok"}

    @app.post("/sync/push")
    async def push_cameras(request: Request) -> dict[str, object]:
        """Push local cameras to the backend."""
        report = await _container(request).sync_service.sync_local_cameras_to_remote()
        return {"report": report}

    @app.post("/sync/import")
    async def import_cameras(request: Request) -> dict[str, object]:
        """Repair the local cache from the backend."""
        report = (
            await _container(request).sync_service.import_remote_cameras_to_local()
        )
        return {"report": report}

    return app
