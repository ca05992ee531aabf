"""Development entry point: ``python -m servicedesk``."""

import uvicorn

from servicedesk.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "servicedesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
