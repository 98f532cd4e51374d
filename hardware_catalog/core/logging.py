import sys

from loguru import logger

from hardware_catalog.core.config import settings


def setup_logging():
    logger.remove()
    if settings.LOG_JSON:
        logger.add(sys.stdout, level=settings.LOG_LEVEL, serialize=True)
    else:
        logger.add(
            sys.stdout,
            level=settings.LOG_LEVEL,
            format="{time:YYYY-MM-DDTHH:mm:ssZ} | {level} | "
                   + settings.SERVICE_NAME
                   + " | {extra} | {message}",
        )
    logger.info(
        "Logging configured for service={service}, level={level}, json={json}",
        service=settings.SERVICE_NAME,
        level=settings.LOG_LEVEL,
        json=settings.LOG_JSON,
    )
