# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Serve the DSICOLA API with uvicorn.

Usage:
    python -m dsicola.api

Host and port come from the API_HOST and API_PORT settings.
"""

import uvicorn

from dsicola.core.config import get_settings


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "dsicola.api:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
