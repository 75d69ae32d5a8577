import os
import sys

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | instance={extra[instance_id]} | {message}"

_sink_ids: list[int] = []


def reset_logger() -> None:
    """Remove the sinks installed by ``setup_logger``."""
    global _sink_ids

    for sink_id in _sink_ids:
        logger.remove(sink_id)
    _sink_ids = []


def setup_logger(
    log_level: str = "INFO",
    log_path: str | None = "logs/crawler.log",
    instance_id: str | None = None,
):
    """
    Route crawler logs to stderr and, when ``log_path`` is set, to a rotating file.

    Calling it again replaces the previous sinks, so a reloaded config takes
    effect without duplicating output. An unknown ``log_level`` raises
    ``ValueError`` before any sink is touched.
    """
    global _sink_ids

    level = log_level.upper()
    logger.level(level)

    resolved_instance_id = instance_id or os.getenv("INSTANCE_ID") or str(os.getpid())

    if _sink_ids:
        reset_logger()
    else:
        # loguru's default stderr handler
        logger.remove()

    logger.configure(extra={"instance_id": resolved_instance_id})

    _sink_ids.append(logger.add(sys.stderr, colorize=True, level=level, format=LOG_FORMAT))

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        _sink_ids.append(
            logger.add(
                log_path,
                rotation="10 MB",
                retention="7 days",
                level=level,
                format=LOG_FORMAT,
            )
        )

    return logger.bind(instance_id=resolved_instance_id)
