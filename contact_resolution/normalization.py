from __future__ import annotations

import re

import idna

# Providers that ignore dots in the local part and route "+tag" aliases to the same inbox.
GMAIL_DOMAINS = frozenset({"gmail.com", "googlemail.com"})

_NON_DIGITS = re.compile(r"\D")


def _encode_domain(domain: str) -> str:
    if not domain:
        return domain
    try:
        return idna.encode(domain).decode("ascii").lower()
    except (idna.IDNAError, UnicodeError):
        return domain


def normalize_email(value: str | None) -> str:
    """Canonical dedup key for an email address.

    Never raises: malformed input yields the trimmed, lowercased string and
    empty input yields "".
    """
    if not value:
        return ""
    cleaned = value.strip().lower()
    if "@" not in cleaned:
        return cleaned
    local, domain = cleaned.split("@", 1)
    local = local.strip()
    domain = _encode_domain(domain.strip())
    if domain in GMAIL_DOMAINS:
        local = local.replace(".", "")
    if "+" in local:
        local = local.split("+", 1)[0]
    return f"{local}@{domain}"


def email_parts(value: str | None) -> tuple[str, str]:
    """Split a normalized email into (local, domain); missing parts are ""."""
    normalized = normalize_email(value)
    if "@" not in normalized:
        return normalized, ""
    local, domain = normalized.split("@", 1)
    return local, domain


def normalize_phone(value: str | None) -> str:
    if not value:
        return ""
    digits = _NON_DIGITS.sub("", value)
    # US numbers carrying the country code collapse to the 10-digit national form
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


__all__ = ["GMAIL_DOMAINS", "email_parts", "normalize_email", "normalize_phone"]
