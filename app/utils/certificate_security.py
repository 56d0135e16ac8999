import hashlib
import hmac
import secrets
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

from app.core.config import settings


# No ambiguous characters (0, O, 1, I, L)
ID_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"


def generate_certificate_id(org_prefix: str, type_code: str, sequence: int,
                            year: Optional[int] = None) -> str:
    """
    Format: ORG-YYYY-TYPE-NNNN-XX
    Example: FOM-2026-APP-0001-K7
    """
    year = year or datetime.utcnow().year
    suffix = "".join(secrets.choice(ID_ALPHABET) for _ in range(2))
    return f"{org_prefix.upper()}-{year}-{type_code}-{sequence:04d}-{suffix}"


def sign_certificate(certificate_id: str, recipient_name: str, template_name: str,
                     issue_date: datetime, issuer_name: str) -> str:
    """HMAC-SHA256 over the identity fields that never change after issuance."""
    message = "|".join([
        certificate_id,
        recipient_name,
        template_name,
        issue_date.isoformat(),
        issuer_name,
    ])
    return hmac.new(
        settings.signing_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def signatures_match(presented: str, stored: str) -> bool:
    return hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8"))


def build_verification_url(certificate_id: str, signature: Optional[str] = None) -> str:
    params = {"id": certificate_id}
    if signature:
        params["sig"] = signature
    return f"{settings.public_url}/verify-certificate?{urlencode(params)}"


def client_origin_from_header(forwarded_for: Optional[str]) -> str:
    """
    First hop of an X-Forwarded-For style header, or 'unknown'.
    """
    if not forwarded_for:
        return "unknown"
    first = forwarded_for.split(",")[0].strip()
    return first or "unknown"
