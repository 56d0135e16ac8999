"""
Default issuing organization and certificate templates.

These are seeded by `CertificateService.initialize_defaults`. The derivation
helpers (slug, type code, category, security level) are also used when an
administrator issues against a template that is looked up by name.
"""
import re
from typing import Any, Dict, List

from app.db.schema import SecurityLevel


DEFAULT_ORGANIZATION: Dict[str, Any] = {
    "id": "fom",
    "slug": "fom",
    "name": "FISHERS OF MEN",
    "tagline": "Bringing Jesus to the World",
    "logo_url": "/Logo.png",
    "color_primary": "#0c436a",
    "color_secondary": "#2596be",
    "color_accent": "#436c87",
    "color_text": "#505050",
    "covenant_text": (
        "Do not be afraid, for those who are with us are more than "
        "those who are with them"
    ),
    "covenant_reference": "2 Kings 6:16",
    "executive_director": "Mr. Enoch Kwateh Dongbo",
    "chairperson": "Mr. Gerald Canaan Sohn",
    "secretary": "Miss. Patience Fero",
}

DEFAULT_TEMPLATES: List[Dict[str, str]] = [
    {
        "name": "Certificate of Appreciation",
        "description": "Classic design to thank members for their dedication and support.",
    },
    {
        "name": "Certificate of Excellence",
        "description": "Formal design recognising outstanding achievement in ministry.",
    },
    {
        "name": "Ministry Leadership Certificate",
        "description": "Official recognition of appointed ministry leaders.",
    },
    {
        "name": "Faithful Service Award",
        "description": "Honours years of faithful service to the ministry.",
    },
    {
        "name": "Volunteer Recognition",
        "description": "Celebrates volunteers who give their time to the work.",
    },
    {
        "name": "Mission Completion",
        "description": "Awarded on completion of a mission trip or outreach.",
    },
    {
        "name": "Baptism Certificate",
        "description": "Sacred design commemorating the sacrament of baptism.",
    },
    {
        "name": "Youth Achievement",
        "description": "Recognises achievements of the youth ministry.",
    },
    {
        "name": "Executive Director Appreciation",
        "description": "Appreciation issued personally by the Executive Director.",
    },
]

# Checked in order; first keyword found in the upper-cased name wins
TYPE_CODES = [
    ("EXECUTIVE", "EXD"),
    ("DIRECTOR", "EXD"),
    ("APPRECIATION", "APP"),
    ("EXCELLENCE", "EXC"),
    ("LEADERSHIP", "LED"),
    ("SERVICE", "SRV"),
    ("FAITHFUL", "SRV"),
    ("VOLUNTEER", "VOL"),
    ("MISSION", "MSN"),
    ("BAPTISM", "BAP"),
    ("YOUTH", "YTH"),
    ("CHAIRPERSON", "CHR"),
    ("COMPLETION", "CMP"),
    ("RECOGNITION", "REC"),
]

CATEGORIES = [
    ("BAPTISM", "baptism"),
    ("MISSION", "mission"),
    ("VOLUNTEER", "volunteer"),
    ("LEADERSHIP", "leadership"),
    ("YOUTH", "youth"),
    ("EXCELLENCE", "excellence"),
    ("SERVICE", "service"),
]


def template_slug(name: str) -> str:
    """
    Predictable template id from its name.
    Example: 'Certificate of Appreciation' -> 'certificate-of-appreciation'
    """
    slug = re.sub(r"[^a-z0-9]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug[:50]


def type_code_for(name: str) -> str:
    upper = name.upper()
    for keyword, code in TYPE_CODES:
        if keyword in upper:
            return code

    # Fall back to the capitals of the name, padded
    return re.sub(r"[^A-Z]", "", name)[:3].ljust(3, "X")


def category_for(name: str) -> str:
    upper = name.upper()
    for keyword, category in CATEGORIES:
        if keyword in upper:
            return category
    return "appreciation"


def default_security_level_for(name: str) -> SecurityLevel:
    upper = name.upper()
    if any(k in upper for k in ("EXECUTIVE", "LEADERSHIP", "BAPTISM")):
        return SecurityLevel.HIGH
    if any(k in upper for k in ("EXCELLENCE", "MISSION", "YOUTH")):
        return SecurityLevel.STANDARD
    return SecurityLevel.BASIC


def template_design(name: str) -> Dict[str, Any]:
    """Minimal design payload handed to the front-end renderer."""
    return {
        "name": name,
        "page": {"width": 1056, "height": 816, "orientation": "landscape"},
        "colors": {
            "primary": DEFAULT_ORGANIZATION["color_primary"],
            "secondary": DEFAULT_ORGANIZATION["color_secondary"],
            "accent": DEFAULT_ORGANIZATION["color_accent"],
            "text": DEFAULT_ORGANIZATION["color_text"],
        },
        "fields": ["recipient_name", "issue_date", "issuer_name", "verification_url"],
    }
