import re


def normalize_phone(raw: str | None) -> str:
    """Digits only; an empty result means "no phone"."""
    if not raw:
        return ""
    return re.sub(r"[^0-9]", "", raw)
