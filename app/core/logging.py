import logging
import sys

from loguru import logger

from app.core.config import settings


# Third-party loggers that otherwise keep their own handlers
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class InterceptHandler(logging.Handler):
    """Forwards stdlib log records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame.f_back and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage())


def setup_logging() -> None:
    level = "DEBUG" if settings.debug else "INFO"

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(logging.INFO)
    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = []
        std_logger.propagate = True

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        settings.log_dir / "application.log",
        rotation="500 MB",
        compression="zip",
        level=level,
        backtrace=True,
        diagnose=settings.debug,
    )
