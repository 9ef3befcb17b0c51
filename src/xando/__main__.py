"""Entry point for running X&O via ``python -m xando``."""

from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered X&O web server."""

    host = os.environ.get("XANDO_HOST", "0.0.0.0")
    port = int(os.environ.get("XANDO_PORT", "8000"))
    level = os.environ.get("XANDO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run("xando.ui:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
