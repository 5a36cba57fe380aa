import logging

from idregistry.core.config import settings


def _category_enabled(category: str | None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    if category == "allocation":
        return settings.FLOW_LOGS_ALLOCATION_ENABLED
    if category == "retirement":
        return settings.FLOW_LOGS_RETIREMENT_ENABLED
    return True


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    if _category_enabled(category):
        logger.info(msg, *args, **kwargs)
