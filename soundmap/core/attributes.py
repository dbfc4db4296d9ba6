"""Best-effort reading of serial number and product string for a USB device."""

from __future__ import annotations

import logging
from pathlib import Path

from soundmap.core.model import DeviceAttributes, UsbAddress
from soundmap.core.port_resolver import usb_device_node
from soundmap.sources.sysfs import SysfsReader
from soundmap.sources.udevadm import UdevAdm

LOGGER = logging.getLogger(__name__)


class AttributeReader:
    def __init__(self, sysfs: SysfsReader, udev: UdevAdm, dev_root: Path = Path("/dev")) -> None:
        self.sysfs = sysfs
        self.udev = udev
        self.dev_root = Path(dev_root)

    def read(self, address: UsbAddress | None, vendor_id: str, product_id: str) -> DeviceAttributes:
        """Collect serial and product name from sysfs, then udev properties.

        ``vendor_id`` and ``product_id`` must already be validated.
        """
        serial: str | None = None
        product_name: str | None = None
        if address is None:
            return DeviceAttributes(vendor_id=vendor_id, product_id=product_id)

        node = self.sysfs.locate_node(address.bus, address.device)
        if node is None:
            node = self.sysfs.scan_for_address(address.bus, address.device)
        if node is not None:
            serial = self.sysfs.read_attribute(node, "serial")
            product_name = self.sysfs.read_attribute(node, "product")
            LOGGER.debug("sysfs %s: serial=%s product=%s", node, serial, product_name)

        if serial is None or product_name is None:
            usb_node = usb_device_node(self.dev_root, address)
            properties = self.udev.properties(usb_node) if usb_node.exists() else None
            if properties:
                serial = serial or properties.get("ID_SERIAL_SHORT") or properties.get("ID_SERIAL")
                product_name = product_name or properties.get("ID_MODEL")
                LOGGER.debug("udev %s: serial=%s product=%s", usb_node, serial, product_name)

        return DeviceAttributes(
            vendor_id=vendor_id,
            product_id=product_id,
            serial=serial or None,
            product_name=product_name or None,
        )
