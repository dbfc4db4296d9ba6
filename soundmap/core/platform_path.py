"""Resolution of the controller-qualified ``ID_PATH`` of a USB sound device."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from soundmap.core.model import UsbAddress
from soundmap.core.port_resolver import usb_device_node
from soundmap.core.validation import is_safe_token
from soundmap.sources.sysfs import SysfsReader
from soundmap.sources.udevadm import UdevAdm

LOGGER = logging.getLogger(__name__)

_PORT_NUMBERS_RE = re.compile(r"usb-(\d+\.\d+)")


def platform_port_numbers(port_token: str | None) -> str | None:
    if not port_token:
        return None
    match = _PORT_NUMBERS_RE.search(port_token)
    return match.group(1) if match else None


class PlatformPathResolver:
    def __init__(self, sysfs: SysfsReader, udev: UdevAdm, dev_root: Path = Path("/dev")) -> None:
        self.sysfs = sysfs
        self.udev = udev
        self.dev_root = Path(dev_root)

    def resolve(
        self,
        bus: int | None,
        device: int | None,
        port_token: str | None,
        card_number: int | None = None,
    ) -> str | None:
        if bus is not None and device is not None:
            node = usb_device_node(self.dev_root, UsbAddress(bus=bus, device=device))
            id_path = self._id_path(node)
            if id_path:
                LOGGER.debug("Found ID_PATH from USB device node: %s", id_path)
                return id_path

        if card_number is not None:
            id_path = self._id_path(self.dev_root / f"snd/controlC{card_number}")
            if id_path:
                LOGGER.debug("Found ID_PATH from sound card device: %s", id_path)
                return id_path

        port_numbers = platform_port_numbers(port_token)
        if port_numbers:
            for controller in self.sysfs.controller_ids():
                id_path = f"platform-{controller}-usb-0:{port_numbers}:1.0"
                if is_safe_token(id_path):
                    LOGGER.debug("Reconstructed platform path: %s", id_path)
                    return id_path

        LOGGER.debug("No platform path for bus %s device %s", bus, device)
        return None

    def _id_path(self, node: Path) -> str | None:
        if not node.exists():
            LOGGER.debug("Device node %s does not exist", node)
            return None
        properties = self.udev.properties(node)
        if not properties:
            return None
        id_path = properties.get("ID_PATH")
        if id_path and is_safe_token(id_path):
            return id_path
        return None
