"""ASGI entrypoint and local server for the synchronizer API."""

import uvicorn

from znap_sync.api.app import create_app
from znap_sync.config import Settings
from znap_sync.containers import build_container

settings = Settings()
app = create_app(build_container(settings))


def run() -> None:
    """Serve the API on the configured host and port."""
    uvicorn.run(app, host=settings.host, port=settings.port)
