"""Service layer used by CLI and API frontends."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from soundmap.core.attributes import AttributeReader
from soundmap.core.config import Settings
from soundmap.core.errors import DeviceLookupError, EnumerationError, SoundmapError, ValidationError
from soundmap.core.identity import disambiguate
from soundmap.core.model import (
    BatchFailure,
    BatchResult,
    CardUsbInfo,
    DetectionEntry,
    DetectionReport,
    Identity,
    MappingRequest,
    MappingResult,
    PortResolution,
    SoundCard,
    UsbAddress,
    UsbDevice,
)
from soundmap.core.platform_path import PlatformPathResolver
from soundmap.core.port_resolver import PortResolver
from soundmap.core.rule_store import RuleStore
from soundmap.core.rules import synthesize
from soundmap.core.validation import normalize_usb_id, validate_friendly_name, validate_port_hint
from soundmap.sources import enumeration
from soundmap.sources.sysfs import SysfsReader
from soundmap.sources.udevadm import UdevAdm

LOGGER = logging.getLogger(__name__)


class MapperService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        udev: UdevAdm | None = None,
        sysfs: SysfsReader | None = None,
    ) -> None:
        self.settings = settings or Settings()
        logging.getLogger("soundmap").setLevel(self.settings.numeric_log_level)
        self.sysfs = sysfs or SysfsReader(self.settings.sysfs_root)
        self.udev = udev or UdevAdm(self.settings.udevadm)
        self.attributes = AttributeReader(self.sysfs, self.udev, self.settings.dev_root)
        self.port_resolver = PortResolver(self.sysfs, self.udev, self.settings.dev_root)
        self.platform_resolver = PlatformPathResolver(self.sysfs, self.udev, self.settings.dev_root)
        self.store = RuleStore(self.settings.rules_file)

    def list_usb_devices(self) -> list[UsbDevice]:
        return enumeration.list_usb_devices(self.settings.lsusb)

    def list_sound_cards(self) -> list[SoundCard]:
        return enumeration.list_sound_cards(self.settings.asound_root)

    def existing_rules(self) -> str:
        return self.store.read()

    def reload_rules(self) -> None:
        self.udev.reload_rules()

    def find_usb_address(self, vendor_id: str, product_id: str) -> UsbAddress | None:
        """Locate a device by ids in the lsusb listing; the first match wins."""
        try:
            devices = self.list_usb_devices()
        except EnumerationError as exc:
            LOGGER.debug("USB enumeration unavailable: %s", exc)
            return None
        for device in devices:
            if device.vendor_id == vendor_id and device.product_id == product_id:
                LOGGER.info("Found device in lsusb: bus=%s, dev=%s", device.address.bus, device.address.device)
                return device.address
        return None

    def card_usb_info(self, card_index: int) -> CardUsbInfo:
        """USB address and ids behind an ALSA card, from procfs then the udev attribute walk."""
        info = enumeration.card_usb_info(self.settings.asound_root, card_index)
        if info.address is not None and info.vendor_id is not None:
            return info

        control = self.settings.dev_root / f"snd/controlC{card_index}"
        attrs = self.udev.attribute_walk(control) if control.exists() else None
        if not attrs:
            return info

        address = info.address
        busnum, devnum = attrs.get("busnum"), attrs.get("devnum")
        if address is None and busnum and devnum and busnum.isdigit() and devnum.isdigit():
            address = UsbAddress(bus=int(busnum), device=int(devnum))
            LOGGER.info("Found USB bus:device = %s from device node", address)
        return CardUsbInfo(
            address=address,
            vendor_id=info.vendor_id or attrs.get("idVendor"),
            product_id=info.product_id or attrs.get("idProduct"),
        )

    def resolve_identity(
        self,
        address: UsbAddress,
        vendor_id: str,
        product_id: str,
    ) -> tuple[PortResolution | None, Identity | None]:
        attributes = self.attributes.read(address, vendor_id, product_id)
        resolution = self.port_resolver.resolve_detailed(address.bus, address.device)
        if resolution is None:
            return None, None
        identity = disambiguate(
            resolution.token,
            attributes.serial,
            attributes.product_name,
            address.bus,
            address.device,
            low_confidence=resolution.low_confidence,
        )
        return resolution, identity

    def map_device(self, request: MappingRequest, *, commit: bool = True) -> MappingResult:
        vendor_id = normalize_usb_id(request.vendor_id, kind="vendor")
        product_id = normalize_usb_id(request.product_id, kind="product")
        friendly_name = validate_friendly_name(request.friendly_name)
        warnings: list[str] = []

        port_hint = self._port_hint(request.port, warnings)
        address = request.address
        card_label = request.card_label

        if request.card_index is not None:
            card = enumeration.find_sound_card(self.settings.asound_root, request.card_index)
            if card is None:
                raise DeviceLookupError(f"No sound card found with number {request.card_index}.")
            card_label = card_label or card.label
            if port_hint is None and card.usb_path:
                LOGGER.info("Found USB path from card info: %s", card.usb_path)
                port_hint = self._port_hint(card.usb_path, warnings)
            if address is None:
                address = self.card_usb_info(request.card_index).address

        if address is None:
            address = self.find_usb_address(vendor_id, product_id)

        attributes = self.attributes.read(address, vendor_id, product_id)

        resolution: PortResolution | None = None
        if port_hint is not None:
            resolution = PortResolution(token=port_hint, tier="caller")
        elif address is not None:
            resolution = self.port_resolver.resolve_detailed(address.bus, address.device)

        identity: Identity | None = None
        if resolution is not None:
            identity = disambiguate(
                resolution.token,
                attributes.serial,
                attributes.product_name,
                address.bus if address else None,
                address.device if address else None,
                low_confidence=resolution.low_confidence,
            )
            if resolution.low_confidence:
                warnings.append(
                    f"Port for {friendly_name} resolved only to synthetic identifier {resolution.token}; "
                    "no port-specific rule was written."
                )
            if not identity.stable:
                warnings.append(
                    f"{friendly_name} has no serial number; identity {identity.value} will differ "
                    "if the device is mapped again."
                )
        else:
            warnings.append(
                f"No USB port information for {friendly_name}; no port-specific rule was written."
            )

        platform_path = self.platform_resolver.resolve(
            address.bus if address else None,
            address.device if address else None,
            resolution.token if resolution else None,
            request.card_index,
        )

        record = synthesize(
            vendor_id,
            product_id,
            friendly_name,
            identity,
            platform_path,
            card_label,
            namespace=self.settings.symlink_namespace,
        )

        if self.store.has_name(friendly_name):
            warnings.append(
                f"{self.store.path} already contains rules for '{friendly_name}'; new rules are appended, "
                "remove stale entries manually."
            )

        rules_file = self.store.commit(record) if commit else None
        normalized = replace(
            request,
            vendor_id=vendor_id,
            product_id=product_id,
            address=address,
            port=port_hint,
            card_label=card_label,
        )
        return MappingResult(
            request=normalized,
            identity=identity,
            platform_path=platform_path,
            record=record,
            rules_file=rules_file,
            warnings=tuple(warnings),
        )

    def commit(self, result: MappingResult) -> MappingResult:
        """Append an already synthesized (previewed) result to the rule file."""
        return replace(result, rules_file=self.store.commit(result.record))

    def map_many(self, requests: Iterable[MappingRequest], *, commit: bool = True) -> BatchResult:
        results: list[MappingResult] = []
        failures: list[BatchFailure] = []
        for request in requests:
            try:
                results.append(self.map_device(request, commit=commit))
            except SoundmapError as exc:
                LOGGER.error("Mapping %s failed: %s", request.friendly_name, exc)
                failures.append(BatchFailure(request=request, error=str(exc)))
        return BatchResult(results=tuple(results), failures=tuple(failures))

    def detect_ports(self) -> DetectionReport:
        entries: list[DetectionEntry] = []
        for device in self.list_usb_devices():
            resolution, identity = self.resolve_identity(device.address, device.vendor_id, device.product_id)
            entries.append(DetectionEntry(device=device, resolution=resolution, identity=identity))
        return DetectionReport(entries=tuple(entries))

    def _port_hint(self, port: str | None, warnings: list[str]) -> str | None:
        if not port:
            return None
        try:
            return validate_port_hint(port)
        except ValidationError as exc:
            warnings.append(f"{exc} Ignoring it.")
            return None
