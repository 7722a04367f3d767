"""
Main entry point for gatehouse.
"""

import uvicorn

from gatehouse.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "gatehouse.api.server:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=not settings.is_production,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
