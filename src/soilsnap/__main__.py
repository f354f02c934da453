"""Entry point for running Soil Snapshot via `python -m soilsnap`."""

from __future__ import annotations

import uvicorn

from soilsnap.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "soilsnap.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )
