"""Disambiguation of devices sharing a port token."""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable

from soundmap.core.model import Identity

LOGGER = logging.getLogger(__name__)

DISAMBIGUATOR_LENGTH = 8


def disambiguate(
    port_token: str,
    serial: str | None,
    product_name: str | None,
    bus: int | None,
    device: int | None,
    *,
    clock: Callable[[], int] = time.time_ns,
    low_confidence: bool = False,
) -> Identity:
    """Build an Identity for ``port_token``.

    With a serial number the suffix is its first eight characters and the
    identity is reboot-stable. Without one the suffix is a digest that mixes
    in the current time: it only separates devices within this run and will
    differ the next time the same device is resolved.
    """
    if serial:
        return Identity(
            port_token=port_token,
            disambiguator=serial[:DISAMBIGUATOR_LENGTH],
            stable=True,
            low_confidence=low_confidence,
        )

    seed = f"bus{'' if bus is None else bus}dev{'' if device is None else device}"
    seed += product_name or ""
    seed += str(clock())
    digest = hashlib.md5(seed.encode("utf-8"), usedforsecurity=False).hexdigest()
    LOGGER.debug("No serial for %s; using time-seeded suffix", port_token)
    return Identity(
        port_token=port_token,
        disambiguator=digest[:DISAMBIGUATOR_LENGTH],
        stable=False,
        low_confidence=low_confidence,
    )
