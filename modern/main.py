"""Modern assistant entry point."""

import logging

from aiohttp import web

from modern.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Start the HTTP/WebSocket server."""
    from modern.integrations.google_auth import GoogleAuthManager
    from modern.server.app import create_app

    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY is empty; every turn will get a fallback reply")
    if not GoogleAuthManager.get().enabled:
        logger.warning("Google token not found; email/calendar context disabled")

    logger.info(
        "Starting Modern on %s:%d with model %s...",
        settings.server_host,
        settings.server_port,
        settings.claude_model,
    )
    web.run_app(
        create_app(),
        host=settings.server_host,
        port=settings.server_port,
        print=None,
    )


if __name__ == "__main__":
    main()
