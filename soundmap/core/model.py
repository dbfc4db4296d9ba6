"""Core data models used across resolvers, rule synthesis, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class UsbAddress:
    bus: int
    device: int

    @property
    def node_name(self) -> str:
        """Zero-padded ``BBB/DDD`` form used under ``/dev/bus/usb``."""
        return f"{self.bus:03d}/{self.device:03d}"

    def __str__(self) -> str:
        return f"{self.bus}:{self.device}"


@dataclass(frozen=True)
class DeviceAttributes:
    vendor_id: str
    product_id: str
    serial: str | None = None
    product_name: str | None = None


@dataclass(frozen=True)
class PortResolution:
    token: str
    tier: str
    low_confidence: bool = False


@dataclass(frozen=True)
class Identity:
    port_token: str
    disambiguator: str
    stable: bool
    low_confidence: bool = False

    @property
    def value(self) -> str:
        return f"{self.port_token}-{self.disambiguator}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RuleRecord:
    comment: str
    basic_rule: str
    port_rule: str | None = None
    platform_rule: str | None = None

    def lines(self) -> list[str]:
        lines = [self.comment, self.basic_rule]
        if self.port_rule:
            lines.append(self.port_rule)
        if self.platform_rule:
            lines.append(self.platform_rule)
        return lines

    def render(self) -> str:
        return "\n".join(self.lines()) + "\n"


@dataclass(frozen=True)
class UsbDevice:
    address: UsbAddress
    vendor_id: str
    product_id: str
    description: str


@dataclass(frozen=True)
class SoundCard:
    index: int
    label: str
    driver: str
    description: str
    usb_path: str | None = None


@dataclass(frozen=True)
class CardUsbInfo:
    address: UsbAddress | None = None
    vendor_id: str | None = None
    product_id: str | None = None


@dataclass(frozen=True)
class MappingRequest:
    vendor_id: str
    product_id: str
    friendly_name: str
    address: UsbAddress | None = None
    port: str | None = None
    card_index: int | None = None
    card_label: str | None = None


@dataclass(frozen=True)
class MappingResult:
    request: MappingRequest
    identity: Identity | None
    platform_path: str | None
    record: RuleRecord
    rules_file: Path | None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchFailure:
    request: MappingRequest
    error: str


@dataclass(frozen=True)
class BatchResult:
    results: tuple[MappingResult, ...]
    failures: tuple[BatchFailure, ...]

    @property
    def outcome(self) -> str:
        if not self.failures:
            return "success"
        if self.results:
            return "partial"
        return "failure"


@dataclass(frozen=True)
class DetectionEntry:
    device: UsbDevice
    resolution: PortResolution | None
    identity: Identity | None


@dataclass(frozen=True)
class DetectionReport:
    entries: tuple[DetectionEntry, ...] = field(default_factory=tuple)

    @property
    def resolved(self) -> tuple[DetectionEntry, ...]:
        return tuple(
            e for e in self.entries if e.resolution is not None and not e.resolution.low_confidence
        )

    @property
    def outcome(self) -> str:
        if not self.entries or not self.resolved:
            return "failure"
        if len(self.resolved) < len(self.entries):
            return "partial"
        return "success"
