"""Application entry point.

Usage:
    # Development with auto-reload
    uvicorn price_gateway.main:app --reload

    # Installed console script
    price-gateway
"""

from price_gateway.factory import create_app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using configured host and port."""
    import uvicorn

    from price_gateway.core.config import get_settings

    settings = get_settings()

    uvicorn.run(
        "price_gateway.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.is_development,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
