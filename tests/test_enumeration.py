from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from soundmap.core.errors import EnumerationError
from soundmap.core.model import UsbAddress
from soundmap.sources.enumeration import (
    card_usb_info,
    find_sound_card,
    list_sound_cards,
    list_usb_devices,
    parse_cards,
    parse_lsusb,
)

LSUSB = """\
Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub
Bus 001 Device 004: ID 2E88:4610 MOVO X1 MINI
garbage line
Bus 001 Device 001: ID 1d6b:0002 Linux Foundation 2.0 root hub
"""

CARDS = """\
 0 [Headphones     ]: bcm2835_headpho - bcm2835 Headphones
                      bcm2835 Headphones
 2 [MINI           ]: USB-Audio - MOVO X1 MINI
                      MOVO X1 MINI at usb-xhci-hcd.0-1.4, full speed
"""


def _cp(cmd: list[str], rc: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr=stderr)


def test_parse_lsusb() -> None:
    devices = parse_lsusb(LSUSB)

    assert len(devices) == 3
    movo = devices[1]
    assert movo.address == UsbAddress(bus=1, device=4)
    assert movo.vendor_id == "2e88"
    assert movo.product_id == "4610"
    assert movo.description == "MOVO X1 MINI"


def test_list_usb_devices_runs_lsusb(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text):
        assert cmd == ["lsusb"]
        return _cp(cmd, 0, stdout=LSUSB)

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert [str(d.address) for d in list_usb_devices()] == ["2:1", "1:4", "1:1"]


def test_missing_lsusb_is_a_clean_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(cmd, check, capture_output, text):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(EnumerationError) as excinfo:
        list_usb_devices()
    assert "usbutils" in str(excinfo.value)


def test_failing_lsusb_is_a_clean_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        subprocess,
        "run",
        lambda cmd, check, capture_output, text: _cp(cmd, 1, stderr="unable to initialize libusb"),
    )

    with pytest.raises(EnumerationError) as excinfo:
        list_usb_devices()
    assert "libusb" in str(excinfo.value)


def test_parse_cards_extracts_usb_path() -> None:
    cards = parse_cards(CARDS)

    assert [c.index for c in cards] == [0, 2]
    assert cards[0].label == "Headphones"
    assert cards[0].usb_path is None
    assert cards[1].label == "MINI"
    assert cards[1].driver == "USB-Audio"
    assert cards[1].description == "MOVO X1 MINI"
    assert cards[1].usb_path == "usb-xhci-hcd.0-1.4"


def test_list_and_find_cards(tmp_path: Path) -> None:
    (tmp_path / "cards").write_text(CARDS, encoding="utf-8")

    assert len(list_sound_cards(tmp_path)) == 2
    assert find_sound_card(tmp_path, 2).label == "MINI"
    assert find_sound_card(tmp_path, 5) is None


def test_missing_cards_file(tmp_path: Path) -> None:
    with pytest.raises(EnumerationError):
        list_sound_cards(tmp_path)


def test_card_usb_info(tmp_path: Path) -> None:
    card = tmp_path / "card2"
    card.mkdir()
    (card / "usbbus").write_text("001/004\n", encoding="utf-8")
    (card / "usbid").write_text("2e88:4610\n", encoding="utf-8")

    info = card_usb_info(tmp_path, 2)

    assert info.address == UsbAddress(bus=1, device=4)
    assert (info.vendor_id, info.product_id) == ("2e88", "4610")


def test_card_usb_info_split_bus_and_device(tmp_path: Path) -> None:
    card = tmp_path / "card1"
    card.mkdir()
    (card / "usbbus").write_text("003\n", encoding="utf-8")
    (card / "usbdev").write_text("007\n", encoding="utf-8")

    info = card_usb_info(tmp_path, 1)

    assert info.address == UsbAddress(bus=3, device=7)
    assert info.vendor_id is None


def test_card_usb_info_for_onboard_card(tmp_path: Path) -> None:
    (tmp_path / "card0").mkdir()

    info = card_usb_info(tmp_path, 0)

    assert info.address is None
    assert info.vendor_id is None
