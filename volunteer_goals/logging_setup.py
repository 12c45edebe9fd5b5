import os
import sys

from loguru import logger

_BATCH_MODULES = (
    "volunteer_goals.core.weekly_processor",
    "volunteer_goals.core.overdue_detector",
    "volunteer_goals.jobs",
)


def _is_batch_record(record) -> bool:
    return record["name"].startswith(_BATCH_MODULES)


def _ensure_parent(path: str) -> None:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)


def setup_logging() -> None:
    from volunteer_goals.config import settings

    level = settings.log_level.upper()
    _ensure_parent(settings.log_path)

    logger.remove()
    logger.add(sys.stdout, level=level)
    logger.add(settings.log_path, rotation="10 MB", retention=settings.log_retention, level=level)
    if settings.jobs_log_path:
        # weekly/overdue runs also go to their own file for audit
        _ensure_parent(settings.jobs_log_path)
        logger.add(
            settings.jobs_log_path,
            rotation="10 MB",
            retention=settings.log_retention,
            level="INFO",
            filter=_is_batch_record,
        )
