"""
Normalisation helpers shared by services and schemas.
"""

import re
import unicodedata
from typing import Optional

RESERVATION_CODE_RE = re.compile(r"^[A-Z0-9]{6}$")


def slugify(value: str) -> str:
    """
    ASCII slug: accents stripped, lower-cased, runs of other characters
    collapsed into single hyphens.
    """
    normalized = unicodedata.normalize("NFD", value or "")
    without_accents = "".join(c for c in normalized if unicodedata.category(c) != "Mn")
    slug = re.sub(r"[^a-z0-9]+", "-", without_accents.lower()).strip("-")
    return slug


def normalize_email(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    email = raw.strip().lower()
    return email or None


def normalize_cpf(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    digits = re.sub(r"[^0-9]", "", raw)
    return digits or None


def normalize_reservation_code(raw: str) -> Optional[str]:
    """Upper-cased code, or None when it is not 6 alphanumerics."""
    code = (raw or "").strip().upper()
    if not RESERVATION_CODE_RE.match(code):
        return None
    return code


def absolutize_url(url: Optional[str], base: str) -> Optional[str]:
    """
    Absolute http(s) and data: URLs pass through; relative paths are
    prefixed with ``base`` when one is configured.
    """
    if not url:
        return None
    if re.match(r"^(https?:)?//", url, re.IGNORECASE) or url.startswith("data:"):
        return url
    if not base:
        return url
    return f"{base.rstrip('/')}/{url.lstrip('/')}"
