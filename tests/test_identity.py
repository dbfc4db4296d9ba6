from __future__ import annotations

import itertools
import re

from soundmap.core.identity import disambiguate


def test_serial_identity_is_deterministic() -> None:
    first = disambiguate("usb-3.4", "MV0123456789", "MOVO X1 MINI", 3, 4)
    second = disambiguate("usb-3.4", "MV0123456789", "MOVO X1 MINI", 3, 4)

    assert first.value == second.value == "usb-3.4-MV012345"
    assert first.stable is True


def test_short_serial_is_used_whole() -> None:
    identity = disambiguate("1-4", "A1B2", None, 1, 4)
    assert identity.disambiguator == "A1B2"
    assert str(identity) == "1-4-A1B2"


def test_serial_less_identity_changes_with_time() -> None:
    ticks = itertools.count(1_700_000_000_000_000_000, 1_000)

    first = disambiguate("usb-3.4", None, "MOVO X1 MINI", 3, 4, clock=lambda: next(ticks))
    second = disambiguate("usb-3.4", None, "MOVO X1 MINI", 3, 4, clock=lambda: next(ticks))

    assert first.value != second.value
    assert first.stable is False
    assert re.match(r"^[0-9a-f]{8}$", first.disambiguator)
    assert first.value.startswith("usb-3.4-")


def test_empty_serial_is_treated_as_missing() -> None:
    identity = disambiguate("usb-3.4", "", None, None, None, clock=lambda: 42)
    assert identity.stable is False
    assert len(identity.disambiguator) == 8


def test_low_confidence_flag_is_carried() -> None:
    identity = disambiguate("usb-bus1-port4", "XYZ", None, 1, 4, low_confidence=True)
    assert identity.low_confidence is True
