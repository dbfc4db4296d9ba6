"""Input validation for caller-supplied identifiers."""

from __future__ import annotations

import re

from soundmap.core.errors import ValidationError

_USB_ID_RE = re.compile(r"[0-9a-f]{4}")
_FRIENDLY_NAME_RE = re.compile(r"[a-z][a-z0-9-]{0,31}")
_KERNEL_PORT_RE = re.compile(r"\d+-\d+(?:\.\d+)*")
_SIMPLE_PORT_RE = re.compile(r"usb-(\d+\.\d+)")
_UNSAFE_TOKEN_RE = re.compile(r'["\s,]')


def normalize_usb_id(value: str, *, kind: str = "USB") -> str:
    """Return a lowercase 4-hex-digit USB id or raise ValidationError.

    A leading ``0x`` is tolerated, matching how ids are commonly pasted.
    """
    normalized = value.strip().lower()
    if normalized.startswith("0x"):
        normalized = normalized[2:]
    if not _USB_ID_RE.fullmatch(normalized):
        raise ValidationError(f"Invalid {kind} ID: {value!r}. Must be a 4-digit hex value.")
    return normalized


def validate_friendly_name(value: str) -> str:
    if not _FRIENDLY_NAME_RE.fullmatch(value):
        raise ValidationError(
            f"Invalid friendly name: {value!r}. Start with a lowercase letter and use at most "
            "32 lowercase letters, numbers, and hyphens."
        )
    return value


def default_friendly_name(card_label: str) -> str:
    """Derive a friendly name candidate from a card label, e.g. ``MOVO X1 MINI`` -> ``movo-x1-mini``."""
    candidate = re.sub(r"[^a-z0-9-]+", "-", card_label.strip().lower()).strip("-")
    candidate = re.sub(r"-{2,}", "-", candidate)
    return candidate[:32].rstrip("-")


def is_safe_token(value: str) -> bool:
    """True when ``value`` can be embedded in a quoted udev match value."""
    return bool(value) and not _UNSAFE_TOKEN_RE.search(value)


def validate_port_hint(value: str) -> str:
    """Validate a caller-known port string such as ``usb-3.4`` or ``1-4.2``.

    Returns the simplified token used for ``KERNELS`` matching.
    """
    candidate = value.strip()
    if not is_safe_token(candidate):
        raise ValidationError(f"Invalid USB port path: {value!r}. Quotes, commas and spaces are not allowed.")
    if "usb" not in candidate and not _KERNEL_PORT_RE.fullmatch(candidate):
        raise ValidationError(
            f"Invalid USB port path: {value!r}. Expected a topology such as 'usb-3.4' or '1-4.2'."
        )
    return simplify_port(candidate)


def simplify_port(value: str) -> str:
    match = _SIMPLE_PORT_RE.search(value)
    if match:
        return f"usb-{match.group(1)}"
    return value
