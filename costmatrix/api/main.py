"""ASGI entry point.

Run with ``uvicorn costmatrix.api.main:app`` or the ``costmatrix-serve``
script; settings come from the environment (see ``costmatrix.config``).
"""

from __future__ import annotations

from costmatrix.api.app import create_app
from costmatrix.config import Settings, configure_logging

settings = Settings.from_env()
configure_logging(settings.log_level)

app = create_app(settings=settings)


def serve(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Serve the API with uvicorn (single worker)."""
    import uvicorn

    uvicorn.run("costmatrix.api.main:app", host=host, port=port, workers=1)
