"""Attribute reader over the sysfs USB device tree.

Every read is optional: missing nodes, missing attribute files and unreadable
files all come back as ``None`` and are logged at debug level only.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path

LOGGER = logging.getLogger(__name__)

_TRAILING_PORT_RE = re.compile(r"/(\d+-\d+(?:\.\d+)*)$")


def extract_port_segment(path: str) -> str | None:
    """Pull the trailing ``<bus>-<port>[.<port>]*`` segment out of a device path.

    Falls back to the last path component when it at least looks like a
    topology name (contains ``-``).
    """
    stripped = path.rstrip("/")
    match = _TRAILING_PORT_RE.search(stripped)
    if match:
        return match.group(1)
    last = stripped.rsplit("/", 1)[-1]
    if "-" in last:
        return last
    return None


class SysfsReader:
    def __init__(self, root: Path = Path("/sys")) -> None:
        self.root = Path(root)

    @property
    def usb_devices_dir(self) -> Path:
        return self.root / "bus/usb/devices"

    @property
    def platform_devices_dir(self) -> Path:
        return self.root / "bus/platform/devices"

    def read_attribute(self, node: Path, name: str) -> str | None:
        path = node / name
        try:
            value = path.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as exc:
            LOGGER.debug("No attribute %s: %s", path, exc)
            return None
        return value or None

    def locate_node(self, bus: int, device: int) -> Path | None:
        """Find the sysfs node for ``bus``/``device`` by naming convention."""
        for name in (f"{bus}-{device}", f"{bus}-{bus}.{device}"):
            candidate = self.usb_devices_dir / name
            if candidate.is_dir():
                LOGGER.debug("Located sysfs node %s", candidate)
                return candidate

        for candidate in self._entries(f"{bus}-*"):
            if ":" in candidate.name:
                continue
            if candidate.is_dir():
                LOGGER.debug("Located sysfs node %s by bus prefix search", candidate)
                return candidate

        LOGGER.debug("Could not find sysfs path for bus:%s dev:%s", bus, device)
        return None

    def scan_for_address(self, bus: int, device: int) -> Path | None:
        """Linear scan of every USB entry for one whose busnum/devnum match."""
        for candidate in self._entries("*"):
            busnum = self.read_attribute(candidate, "busnum")
            devnum = self.read_attribute(candidate, "devnum")
            if busnum is None or devnum is None:
                continue
            try:
                if int(busnum) == bus and int(devnum) == device:
                    LOGGER.debug("Found device through scan: %s", candidate)
                    return candidate
            except ValueError:
                continue
        return None

    def canonical_path(self, node: Path) -> Path | None:
        try:
            return node.resolve(strict=True)
        except OSError as exc:
            LOGGER.debug("Could not canonicalize %s: %s", node, exc)
            return None

    def controller_ids(self) -> Iterator[str]:
        """Yield platform USB controller ids, root-hub parents first.

        A root hub ``usbN`` resolves to ``.../<controller>/usbN``; the
        controller directory name is used when it mentions ``usb``.
        """
        for hub in self._entries("usb*"):
            resolved = self.canonical_path(hub)
            if resolved is None:
                continue
            parent = resolved.parent.name
            if "usb" in parent:
                yield parent

        if self.platform_devices_dir.is_dir():
            for platform_dev in sorted(self.platform_devices_dir.glob("*.usb")):
                yield platform_dev.name

    def _entries(self, pattern: str) -> list[Path]:
        if not self.usb_devices_dir.is_dir():
            return []
        return sorted(self.usb_devices_dir.glob(pattern))
