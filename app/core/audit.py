from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.db.schema import VerificationAttempt


def record_verification_attempt(
    bind: Engine,
    certificate_id: str,
    method: str,
    client_origin: str,
    valid: bool,
    reason: Optional[str] = None
) -> None:
    """
    Best-effort audit write.
    Opens its OWN session so a failure here never rolls back or fails the
    caller's unit of work.
    """
    try:
        with Session(bind) as session:
            session.add(VerificationAttempt(
                certificate_id=certificate_id,
                method=method,
                client_origin=client_origin,
                valid=valid,
                reason=reason,
                timestamp=datetime.utcnow()
            ))
            session.commit()

    except Exception as e:
        logger.error(
            f"Verification audit failed for certificate {certificate_id!r}: {e}")
