import logging
import logging.handlers
import sys

import uvicorn

from .config import get_settings


def setup_logging():
    settings = get_settings()

    log_path = settings.resolve_path(settings.logging.file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.handlers.RotatingFileHandler(
                str(log_path),
                maxBytes=settings.logging.max_size_mb * 1024 * 1024,
                backupCount=settings.logging.backup_count,
            ),
        ],
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    setup_logging()
    logger = logging.getLogger(__name__)

    settings = get_settings()

    logger.info("=" * 60)
    logger.info("  ThreatWatch - Threat Detection Engine")
    logger.info("=" * 60)
    logger.info(f"  Host: {settings.server.host}")
    logger.info(f"  Port: {settings.server.port}")
    logger.info(f"  Tick interval: {settings.engine.tick_interval}s")
    logger.info(f"  Result capacity: {settings.storage.max_results}")
    logger.info("=" * 60)
    logger.warning("Detection results, baselines and history are kept in memory only")

    # One worker: the engine's state lives in-process
    uvicorn.run(
        "threatwatch.api.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
        workers=1,
        log_config=None,
    )


if __name__ == "__main__":
    main()
