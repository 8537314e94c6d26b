"""API server entry point."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from songsmith.api.routes import create_app
from songsmith.services.session import create_session

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    stream=sys.stderr,
)


def _env_flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


def main() -> None:
    """Run the API server."""
    controller = create_session(
        use_mock=_env_flag("SONGSMITH_USE_MOCK"),
        auto_variations=_env_flag("SONGSMITH_AUTO_VARIATIONS"),
    )
    app = create_app(controller)
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
