import os
import sys

from loguru import logger

_logger_initialized = False
_sink_ids: list[int] = []

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | instance={extra[instance]} | {message}"


def setup_logger(
    log_level: str = "INFO",
    log_path: str | None = "logs/searchengine.log",
    instance_id: str | None = None,
):
    """Configure loguru sinks once per process and return a bound logger."""
    global _logger_initialized, _sink_ids

    resolved_instance = instance_id or os.getenv("INSTANCE_ID") or str(os.getpid())

    if not _logger_initialized:
        logger.remove()
        logger.configure(extra={"instance": resolved_instance})

        sinks = []
        if log_path:
            log_dir = os.path.dirname(log_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            sinks.append(
                logger.add(
                    log_path,
                    rotation="10 MB",
                    retention="7 days",
                    level=log_level,
                    format=LOG_FORMAT,
                    enqueue=True,
                )
            )
        sinks.append(
            logger.add(
                sys.stderr,
                colorize=True,
                level=log_level,
                format=LOG_FORMAT,
            )
        )

        _sink_ids = sinks
        _logger_initialized = True

    return logger.bind(instance=resolved_instance)
