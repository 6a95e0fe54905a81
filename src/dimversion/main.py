#!/usr/bin/env python3
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "dimversion[pg]",
#     "uvicorn",
# ]
# ///

from __future__ import annotations

import logging

import uvicorn

from dimversion.config import load_settings
from dimversion.runtime import Dimensions

logger = logging.getLogger("dimversion")


def main() -> None:
    """Minimal dimversion server."""
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.dimensions:
        raise ValueError("DIMVERSION_DIMENSIONS required")

    app = Dimensions.create_app("dimversion-server", settings=settings)
    logger.info("serving %s on %s:%s", settings.dimensions, settings.host, settings.port)

    # Run server
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
