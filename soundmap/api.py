"""Stable public API for building tooling on top of soundmap.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from soundmap.core.batch import load_batch
from soundmap.core.config import Settings, load_settings
from soundmap.core.errors import (
    BatchFileError,
    ConfigError,
    DeviceLookupError,
    EnumerationError,
    ReloadError,
    RuleStoreError,
    SoundmapError,
    ValidationError,
)
from soundmap.core.model import (
    BatchResult,
    DetectionReport,
    Identity,
    MappingRequest,
    MappingResult,
    PortResolution,
    RuleRecord,
    SoundCard,
    UsbAddress,
    UsbDevice,
)
from soundmap.core.service import MapperService
from soundmap.sources.udevadm import UdevAdm

__all__ = [
    "SoundmapError",
    "ValidationError",
    "RuleStoreError",
    "ConfigError",
    "BatchFileError",
    "DeviceLookupError",
    "EnumerationError",
    "ReloadError",
    "Settings",
    "BatchResult",
    "DetectionReport",
    "Identity",
    "MappingRequest",
    "MappingResult",
    "PortResolution",
    "RuleRecord",
    "SoundCard",
    "UsbAddress",
    "UsbDevice",
    "Client",
]


class Client:
    """Public client for soundmap's resolution and rule installation.

    A `Client` wraps enumeration, port/identity resolution, rule synthesis
    and the rule store behind a stable API for scripts and other frontends.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        config_path: Path | None = None,
        udev: UdevAdm | None = None,
    ) -> None:
        if settings is None:
            settings = load_settings(config_path)
        self._service = MapperService(settings, udev=udev)

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def list_usb_devices(self) -> list[UsbDevice]:
        return self._service.list_usb_devices()

    def list_sound_cards(self) -> list[SoundCard]:
        return self._service.list_sound_cards()

    def resolve_port(self, bus: int, device: int) -> PortResolution | None:
        return self._service.port_resolver.resolve_detailed(bus, device)

    def resolve_platform_path(
        self,
        bus: int | None,
        device: int | None,
        port_token: str | None,
        card_number: int | None = None,
    ) -> str | None:
        return self._service.platform_resolver.resolve(bus, device, port_token, card_number)

    def preview(self, request: MappingRequest) -> MappingResult:
        """Resolve and synthesize without touching the rule file."""
        return self._service.map_device(request, commit=False)

    def map_device(self, request: MappingRequest) -> MappingResult:
        return self._service.map_device(request)

    def map_batch(self, path: Path) -> BatchResult:
        return self._service.map_many(load_batch(path))

    def detect_ports(self) -> DetectionReport:
        return self._service.detect_ports()

    def reload_rules(self) -> None:
        self._service.reload_rules()
