"""
Field validators and the free-text sanitizer.

Every validator returns a ``ValidationResult`` and never raises, so callers can
decide how a rejection is reported (the lifecycle services record each one as
a security event before refusing the operation).
"""

import ipaddress
import math
import re
from decimal import Decimal
from typing import NamedTuple
from urllib.parse import urlsplit

import base58

MINT_ADDRESS_LENGTH = 44
PUBLIC_KEY_BYTES = 32

# lexical prefixes rejected as private/local hosts. "172." is coarser than
# 172.16.0.0/12 and blocks some public addresses as well
BLOCKED_HOSTNAMES = ("localhost", "127.0.0.1")
BLOCKED_HOST_PREFIXES = ("10.", "172.", "192.168.")

SCRIPT_BLOCK_RE = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
JAVASCRIPT_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)


class ValidationResult(NamedTuple):
    valid: bool
    error: str | None = None


VALID = ValidationResult(True)


def validate_mint_address(address: str) -> ValidationResult:
    """
    Checks that ``address`` is a base58 encoded 32 byte public key.

    Only the format is checked, not whether the mint exists on chain or who
    owns it.
    """
    if not address or not isinstance(address, str):
        return ValidationResult(False, "Address is required")

    clean_address = address.strip()
    if not clean_address:
        return ValidationResult(False, "Address cannot be empty")

    if len(clean_address) != MINT_ADDRESS_LENGTH:
        return ValidationResult(False, "Invalid address length")

    try:
        decoded = base58.b58decode(clean_address)
    except ValueError:
        return ValidationResult(False, "Invalid Solana address format")

    if len(decoded) != PUBLIC_KEY_BYTES:
        return ValidationResult(False, "Invalid Solana address format")

    return VALID


def _is_private_ip_literal(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def validate_secure_url(url: str) -> ValidationResult:
    """
    Accepts only https URLs that do not point at local or private hosts.

    Host checks are lexical: hostnames are never resolved, so a public name
    that resolves to a private address passes.
    """
    if not url or not isinstance(url, str):
        return ValidationResult(False, "URL is required")

    clean_url = url.strip()
    if not clean_url:
        return ValidationResult(False, "URL cannot be empty")

    try:
        parts = urlsplit(clean_url)
        hostname = parts.hostname
        # accessing port validates it
        parts.port
    except ValueError:
        return ValidationResult(False, "Invalid URL format")

    if not parts.scheme or not hostname:
        return ValidationResult(False, "Invalid URL format")

    if parts.scheme.lower() != "https":
        return ValidationResult(False, "Only HTTPS URLs are allowed")

    hostname = hostname.lower()
    if (
        hostname in BLOCKED_HOSTNAMES
        or hostname.startswith(BLOCKED_HOST_PREFIXES)
        or _is_private_ip_literal(hostname)
    ):
        return ValidationResult(False, "Private/local URLs are not allowed")

    return VALID


def validate_numeric_range(value, minimum, maximum, label: str) -> ValidationResult:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return ValidationResult(
            False, f"{label} must be a valid number between {minimum} and {maximum}"
        )

    if isinstance(value, Decimal):
        finite = value.is_finite()
    else:
        finite = math.isfinite(value)
    if not finite:
        return ValidationResult(
            False, f"{label} must be a valid number between {minimum} and {maximum}"
        )

    if value < minimum:
        return ValidationResult(
            False, f"{label} must be at least {minimum} (allowed {minimum}-{maximum})"
        )

    if value > maximum:
        return ValidationResult(
            False, f"{label} cannot exceed {maximum} (allowed {minimum}-{maximum})"
        )

    return VALID


def _truncate_utf16(text: str, max_length: int) -> str:
    # lengths are counted in UTF-16 code units like the browser client does
    encoded = text.encode("utf-16-le", "surrogatepass")
    # lone surrogates, including a pair cut in half, cannot be stored and are dropped
    return encoded[: max_length * 2].decode("utf-16-le", errors="ignore")


def sanitize_text_input(text: str, max_length: int = 1000) -> str:
    """
    Best-effort removal of script payloads from free text.

    Trims, truncates to ``max_length`` UTF-16 code units, then strips
    ``<script>`` blocks, ``javascript:`` schemes and inline ``on<event>=``
    handlers. This is a pattern filter, not an HTML sanitizer: it does not
    parse markup and obfuscated payloads can get through. Output must still be
    escaped wherever it is rendered.
    """
    if not text or not isinstance(text, str):
        return ""

    cleaned = _truncate_utf16(text.strip(), max_length)
    cleaned = SCRIPT_BLOCK_RE.sub("", cleaned)
    cleaned = JAVASCRIPT_SCHEME_RE.sub("", cleaned)
    cleaned = EVENT_HANDLER_RE.sub("", cleaned)
    return cleaned
