# backend/run.py
import sys
import uvicorn

from noticeboard.config import settings
from noticeboard.utils.logging import api_logger


def main():
    api_logger.info("Starting noticeboard API", extra={
        "host": settings.API_HOST,
        "port": settings.API_PORT,
        "reload": settings.API_RELOAD
    })
    try:
        uvicorn.run(
            "noticeboard.main:app",
            host=settings.API_HOST,
            port=settings.API_PORT,
            reload=settings.API_RELOAD
        )
    except Exception as e:
        api_logger.critical(f"Error starting the server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
