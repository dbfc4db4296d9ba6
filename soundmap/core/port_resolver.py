"""Physical USB port resolution as an ordered chain of probe strategies.

Strategies are ordered by decreasing confidence and cost. The first strategy
that yields a token wins; the synthetic last resort always yields one but
carries no topology meaning and is flagged ``low_confidence``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from soundmap.core.model import PortResolution, UsbAddress
from soundmap.core.validation import is_safe_token
from soundmap.sources.sysfs import SysfsReader, extract_port_segment
from soundmap.sources.udevadm import UdevAdm

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortContext:
    address: UsbAddress
    sysfs: SysfsReader
    udev: UdevAdm
    dev_root: Path
    node: Path | None

    @property
    def usb_node(self) -> Path:
        return usb_device_node(self.dev_root, self.address)


PortProbe = Callable[[PortContext], str | None]


@dataclass(frozen=True)
class PortStrategy:
    name: str
    probe: PortProbe
    low_confidence: bool = False


def usb_device_node(dev_root: Path, address: UsbAddress) -> Path:
    return dev_root / "bus/usb" / address.node_name


def run_chain(strategies: Sequence[PortStrategy], context: PortContext) -> PortResolution | None:
    for strategy in strategies:
        token = strategy.probe(context)
        if not token:
            LOGGER.debug("Port strategy %s found nothing for %s", strategy.name, context.address)
            continue
        if not is_safe_token(token):
            LOGGER.debug("Port strategy %s produced unusable token %r", strategy.name, token)
            continue
        LOGGER.debug("Port strategy %s resolved %s -> %s", strategy.name, context.address, token)
        return PortResolution(token=token, tier=strategy.name, low_confidence=strategy.low_confidence)
    return None


def probe_devpath_attribute(context: PortContext) -> str | None:
    if context.node is None:
        return None
    devpath = context.sysfs.read_attribute(context.node, "devpath")
    if devpath is None:
        return None
    return f"usb-{devpath}"


def probe_canonical_path(context: PortContext) -> str | None:
    if context.node is None:
        return None
    resolved = context.sysfs.canonical_path(context.node)
    if resolved is None:
        return None
    return extract_port_segment(str(resolved))


def probe_bus_scan(context: PortContext) -> str | None:
    if context.node is not None:
        return None
    found = context.sysfs.scan_for_address(context.address.bus, context.address.device)
    if found is None:
        return None
    resolved = context.sysfs.canonical_path(found)
    if resolved is None:
        return None
    return extract_port_segment(str(resolved))


def probe_udev_devpath(context: PortContext) -> str | None:
    if not context.usb_node.exists():
        LOGGER.debug("Device node %s does not exist", context.usb_node)
        return None
    properties = context.udev.properties(context.usb_node)
    if not properties:
        return None
    devpath = properties.get("DEVPATH")
    if not devpath:
        return None
    return extract_port_segment(devpath)


def probe_synthetic(context: PortContext) -> str | None:
    return f"usb-bus{context.address.bus}-port{context.address.device}"


DEFAULT_STRATEGIES: tuple[PortStrategy, ...] = (
    PortStrategy("devpath-attribute", probe_devpath_attribute),
    PortStrategy("canonical-path", probe_canonical_path),
    PortStrategy("bus-scan", probe_bus_scan),
    PortStrategy("udev-devpath", probe_udev_devpath),
    PortStrategy("synthetic", probe_synthetic, low_confidence=True),
)


class PortResolver:
    def __init__(
        self,
        sysfs: SysfsReader,
        udev: UdevAdm,
        dev_root: Path = Path("/dev"),
        *,
        strategies: Sequence[PortStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self.sysfs = sysfs
        self.udev = udev
        self.dev_root = Path(dev_root)
        self.strategies = tuple(strategies)

    def context(self, bus: int, device: int) -> PortContext:
        return PortContext(
            address=UsbAddress(bus=bus, device=device),
            sysfs=self.sysfs,
            udev=self.udev,
            dev_root=self.dev_root,
            node=self.sysfs.locate_node(bus, device),
        )

    def resolve_detailed(self, bus: int, device: int) -> PortResolution | None:
        resolution = run_chain(self.strategies, self.context(bus, device))
        if resolution is None:
            LOGGER.info("No port token could be resolved for bus %s device %s", bus, device)
        elif resolution.low_confidence:
            LOGGER.info(
                "Using synthetic port identifier %s for bus %s device %s; it carries no topology",
                resolution.token,
                bus,
                device,
            )
        return resolution

    def resolve(self, bus: int, device: int) -> str | None:
        resolution = self.resolve_detailed(bus, device)
        return resolution.token if resolution else None
