"""USB device and ALSA sound card enumeration."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from soundmap.core.errors import EnumerationError
from soundmap.core.model import CardUsbInfo, SoundCard, UsbAddress, UsbDevice

LOGGER = logging.getLogger(__name__)

_LSUSB_LINE_RE = re.compile(
    r"^Bus\s+(\d{3})\s+Device\s+(\d{3}):\s+ID\s+([0-9a-fA-F]{4}):([0-9a-fA-F]{4})\s*(.*)$"
)
_CARD_HEADER_RE = re.compile(r"^\s*(\d+)\s+\[([^\]]*)\]:\s*(\S+)\s+-\s+(.*)$")
_CARD_USB_PATH_RE = re.compile(r"\bat\s+(usb-[^ ,]+)")
_USBID_RE = re.compile(r"([0-9a-fA-F]{4}):([0-9a-fA-F]{4})")


def parse_lsusb(text: str) -> list[UsbDevice]:
    devices: list[UsbDevice] = []
    for line in text.splitlines():
        match = _LSUSB_LINE_RE.match(line.strip())
        if not match:
            continue
        devices.append(
            UsbDevice(
                address=UsbAddress(bus=int(match.group(1)), device=int(match.group(2))),
                vendor_id=match.group(3).lower(),
                product_id=match.group(4).lower(),
                description=match.group(5).strip(),
            )
        )
    return devices


def list_usb_devices(lsusb: str = "lsusb") -> list[UsbDevice]:
    try:
        result = subprocess.run(
            [lsusb],
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise EnumerationError(f"'{lsusb}' is not installed; install usbutils.") from exc

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise EnumerationError(f"Failed to run {lsusb}: {stderr or f'exit status {result.returncode}'}")
    return parse_lsusb(result.stdout)


def parse_cards(text: str) -> list[SoundCard]:
    """Parse ``/proc/asound/cards``.

    Each card spans a header line and an indented detail line; USB cards
    embed their port path in the detail line as ``at usb-...``.
    """
    cards: list[SoundCard] = []
    lines = text.splitlines()
    for position, line in enumerate(lines):
        match = _CARD_HEADER_RE.match(line)
        if not match:
            continue
        detail = lines[position + 1] if position + 1 < len(lines) else ""
        usb_match = _CARD_USB_PATH_RE.search(detail) or _CARD_USB_PATH_RE.search(line)
        cards.append(
            SoundCard(
                index=int(match.group(1)),
                label=match.group(2).strip(),
                driver=match.group(3),
                description=match.group(4).strip(),
                usb_path=usb_match.group(1) if usb_match else None,
            )
        )
    return cards


def list_sound_cards(asound_root: Path = Path("/proc/asound")) -> list[SoundCard]:
    cards_file = asound_root / "cards"
    try:
        text = cards_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise EnumerationError(f"Cannot access {cards_file}. Is ALSA installed properly?") from exc
    return parse_cards(text)


def find_sound_card(asound_root: Path, index: int) -> SoundCard | None:
    for card in list_sound_cards(asound_root):
        if card.index == index:
            return card
    return None


def card_usb_info(asound_root: Path, index: int) -> CardUsbInfo:
    """Read the USB facts ALSA exposes in ``cardN/usbbus``, ``usbdev`` and ``usbid``."""
    card_dir = asound_root / f"card{index}"
    usbbus = _read(card_dir / "usbbus")
    usbdev = _read(card_dir / "usbdev")
    usbid = _read(card_dir / "usbid")

    address: UsbAddress | None = None
    if usbbus:
        bus_text, _, dev_text = usbbus.partition("/")
        dev_text = dev_text or (usbdev or "")
        if bus_text.isdigit() and dev_text.isdigit():
            address = UsbAddress(bus=int(bus_text), device=int(dev_text))

    vendor_id = product_id = None
    if usbid:
        match = _USBID_RE.search(usbid)
        if match:
            vendor_id, product_id = match.group(1).lower(), match.group(2).lower()

    if address is None and vendor_id is None:
        LOGGER.debug("Card %s exposes no USB information; it may not be a USB device", index)
    return CardUsbInfo(address=address, vendor_id=vendor_id, product_id=product_id)


def _read(path: Path) -> str | None:
    try:
        value = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    return value or None
