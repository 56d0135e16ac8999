from contextlib import contextmanager
from typing import Iterator

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session


class StoreFailure(Exception):
    """Raised when the underlying database is unreachable or rejects an
    operation. The client is not at fault and never sees the detail."""

    message: str

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@contextmanager
def guard_store(session: Session, action: str) -> Iterator[None]:
    """Rolls back and re-raises store errors as StoreFailure."""
    try:
        yield
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Store failure while trying to {action}: {e}")
        raise StoreFailure(f"Could not {action}.") from e


def store_failure_handler(request: Request, exc: StoreFailure) -> JSONResponse:
    logger.opt(exception=exc.__cause__ or exc).error(
        f"{request.method} {request.url.path} failed: {exc.message}")

    # don't leak any internal information about a 500
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
