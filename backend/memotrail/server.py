from __future__ import annotations

import uvicorn

from memotrail.core.config import get_settings


def main() -> None:
    """Serve the memo API with uvicorn on the configured host and port."""

    settings = get_settings()
    config = uvicorn.Config(
        "memotrail.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    main()
