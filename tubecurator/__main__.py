"""Run the curation service with ``python -m tubecurator``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("tubecurator")


def main() -> None:
    """Serve ``app.main:app`` on the configured host and port."""

    logging.basicConfig(level=logging.INFO)
    logger.info(
        "Starting %s on %s:%s (region %s, %s results per page, default key %s)",
        settings.app_name,
        settings.server_host,
        settings.server_port,
        settings.default_region_code,
        settings.search_page_size,
        "configured" if settings.youtube_api_key else "not configured",
    )
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
        log_level="debug" if settings.environment == "development" else "info",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
