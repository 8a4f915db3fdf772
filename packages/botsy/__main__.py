"""Run the API with uvicorn: ``python -m packages.botsy``."""

from __future__ import annotations

import os

import uvicorn

from .api import create_app
from .logging_config import configure_logging


def main() -> None:
    configure_logging(os.getenv("BOTSY_LOG_LEVEL", "INFO"))
    uvicorn.run(
        create_app(),
        host=os.getenv("BOTSY_HOST", "0.0.0.0"),
        port=int(os.getenv("BOTSY_PORT", "8000")),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
