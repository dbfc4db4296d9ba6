from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from soundmap.core.config import Settings
from soundmap.core.errors import DeviceLookupError, ValidationError
from soundmap.core.model import MappingRequest, UsbAddress
from soundmap.core.service import MapperService

BASIC = (
    'SUBSYSTEM=="sound", ATTRS{idVendor}=="2e88", ATTRS{idProduct}=="4610", '
    'SYMLINK+="sound/by-id/movo-mic", ATTR{id}="movo-mic"'
)


def _cp(cmd: list[str], rc: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(cmd, rc, stdout=stdout, stderr=stderr)


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        rules_file=tmp_path / "rules.d/99-usb-soundcards.rules",
        sysfs_root=tmp_path / "sys",
        dev_root=tmp_path / "dev",
        asound_root=tmp_path / "asound",
    )


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch()
    return path


class FakeHost:
    """Answers lsusb and udevadm invocations from canned data."""

    def __init__(self, lsusb: str = "", properties: dict[str, str] | None = None) -> None:
        self.lsusb = lsusb
        self.properties = properties or {}
        self.calls: list[list[str]] = []

    def run(self, cmd, check, capture_output, text):
        self.calls.append(list(cmd))
        if cmd[0] == "lsusb":
            return _cp(cmd, 0, stdout=self.lsusb)
        if cmd[:2] == ["udevadm", "info"] and cmd[-1] == "--query=property":
            node = cmd[2].split("=", 1)[1]
            if node in self.properties:
                return _cp(cmd, 0, stdout=self.properties[node])
            return _cp(cmd, 1, stderr="Unknown device")
        if cmd[:2] == ["udevadm", "info"]:
            return _cp(cmd, 1, stderr="Unknown device")
        raise AssertionError(f"Unexpected cmd: {cmd}")


@pytest.fixture
def host(monkeypatch: pytest.MonkeyPatch) -> FakeHost:
    fake = FakeHost()
    monkeypatch.setattr(subprocess, "run", fake.run)
    return fake


def test_map_without_any_port_information(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))

    result = service.map_device(MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic"))

    rules_file = tmp_path / "rules.d/99-usb-soundcards.rules"
    assert result.rules_file == rules_file
    assert result.identity is None
    assert result.platform_path is None
    assert rules_file.read_text(encoding="utf-8") == f"# USB Sound Card: movo-mic\n{BASIC}\n"
    assert any("No USB port information" in w for w in result.warnings)


def test_map_with_known_port_and_platform_path(tmp_path: Path, host: FakeHost) -> None:
    node = _touch(tmp_path / "dev/bus/usb/003/004")
    host.properties[str(node)] = (
        "DEVPATH=/devices/platform/xhci-hcd.0/usb3/3-4\n"
        "ID_PATH=platform-xhci-hcd.0-usb-0:3.4:1.0\n"
        "ID_SERIAL_SHORT=MV0123456789\n"
        "ID_MODEL=MOVO_X1_MINI\n"
    )
    service = MapperService(_settings(tmp_path))

    result = service.map_device(
        MappingRequest(
            vendor_id="2E88",
            product_id="4610",
            friendly_name="movo-mic",
            address=UsbAddress(bus=3, device=4),
            port="usb-3.4",
        )
    )

    assert result.identity is not None
    assert result.identity.value == "usb-3.4-MV012345"
    assert result.platform_path == "platform-xhci-hcd.0-usb-0:3.4:1.0"
    assert result.warnings == ()
    assert result.request.vendor_id == "2e88"

    lines = (tmp_path / "rules.d/99-usb-soundcards.rules").read_text(encoding="utf-8").splitlines()
    rules = [line for line in lines if not line.startswith("#")]
    assert len(rules) == 3
    assert rules[0] == BASIC
    assert 'KERNELS=="usb-3.4"' in rules[1]
    assert 'ENV{ID_PATH}=="platform-xhci-hcd.0-usb-0:3.4:1.0"' in rules[2]
    assert all('ATTR{id}="movo-mic"' in rule for rule in rules)


def test_dry_run_does_not_touch_rule_file(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))

    result = service.map_device(
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic", port="usb-1.2"),
        commit=False,
    )

    assert result.rules_file is None
    assert result.record.port_rule is not None
    assert not (tmp_path / "rules.d/99-usb-soundcards.rules").exists()

    committed = service.commit(result)
    assert committed.rules_file == tmp_path / "rules.d/99-usb-soundcards.rules"
    assert committed.rules_file.read_text(encoding="utf-8") == result.record.render()


def test_invalid_input_is_rejected_before_writing(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))

    with pytest.raises(ValidationError):
        service.map_device(MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="My-Mic"))
    assert not (tmp_path / "rules.d").exists()
    assert host.calls == []


def test_invalid_port_hint_is_ignored_with_warning(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))

    result = service.map_device(
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic", port="front left"),
        commit=False,
    )

    assert result.record.port_rule is None
    assert any("Ignoring it" in w for w in result.warnings)


def test_card_usb_path_is_used_as_port(tmp_path: Path, host: FakeHost) -> None:
    host.lsusb = "Bus 001 Device 004: ID 2e88:4610 MOVO X1 MINI\n"
    asound = tmp_path / "asound"
    asound.mkdir()
    (asound / "cards").write_text(
        " 2 [MINI           ]: USB-Audio - MOVO X1 MINI\n"
        "                      MOVO X1 MINI at usb-3f980000.usb-1.4, full speed\n",
        encoding="utf-8",
    )
    service = MapperService(_settings(tmp_path))

    result = service.map_device(
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic", card_index=2),
        commit=False,
    )

    assert result.request.address == UsbAddress(bus=1, device=4)
    assert result.request.card_label == "MINI"
    assert result.identity is not None
    assert result.identity.port_token == "usb-1.4"
    assert result.identity.stable is False
    assert result.record.comment.startswith("# USB Sound Card: MINI (identity usb-1.4-")
    assert 'KERNELS=="usb-1.4"' in result.record.port_rule


def test_missing_card_is_a_lookup_error(tmp_path: Path, host: FakeHost) -> None:
    asound = tmp_path / "asound"
    asound.mkdir()
    (asound / "cards").write_text(" 0 [Headphones]: bcm2835 - bcm2835 Headphones\n", encoding="utf-8")
    service = MapperService(_settings(tmp_path))

    with pytest.raises(DeviceLookupError):
        service.map_device(
            MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic", card_index=3)
        )


def test_duplicate_name_warns_and_appends(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))
    request = MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic")

    first = service.map_device(request)
    second = service.map_device(request)

    assert not any("already contains" in w for w in first.warnings)
    assert any("already contains" in w for w in second.warnings)
    text = (tmp_path / "rules.d/99-usb-soundcards.rules").read_text(encoding="utf-8")
    assert text == first.record.render() + second.record.render()


def test_batch_continues_past_bad_entry(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))
    requests = [
        MappingRequest(vendor_id="zz", product_id="4610", friendly_name="broken"),
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic"),
    ]

    batch = service.map_many(requests)

    assert batch.outcome == "partial"
    assert [f.request.friendly_name for f in batch.failures] == ["broken"]
    assert "Invalid vendor ID" in batch.failures[0].error
    assert [r.request.friendly_name for r in batch.results] == ["movo-mic"]
    text = (tmp_path / "rules.d/99-usb-soundcards.rules").read_text(encoding="utf-8")
    assert 'ATTR{id}="movo-mic"' in text
    assert "broken" not in text


def test_detect_ports_reports_partial(tmp_path: Path, host: FakeHost) -> None:
    host.lsusb = (
        "Bus 002 Device 001: ID 1d6b:0003 Linux Foundation 3.0 root hub\n"
        "Bus 001 Device 004: ID 2e88:4610 MOVO X1 MINI\n"
    )
    node = tmp_path / "sys/devices/pci0000:00/0000:00:14.0/usb1/1-4"
    node.mkdir(parents=True)
    (node / "devpath").write_text("4\n", encoding="utf-8")
    (node / "serial").write_text("MV0123456789\n", encoding="utf-8")
    links = tmp_path / "sys/bus/usb/devices"
    links.mkdir(parents=True)
    (links / "1-4").symlink_to(node)
    service = MapperService(_settings(tmp_path))

    report = service.detect_ports()

    assert report.outcome == "partial"
    assert len(report.entries) == 2
    root_hub, movo = report.entries
    assert root_hub.resolution is not None and root_hub.resolution.low_confidence
    assert movo.identity is not None
    assert movo.identity.value == "usb-4-MV012345"


def test_batch_continues_past_unreadable_sound_cards(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))
    requests = [
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="first-mic"),
        MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="card-mic", card_index=1),
        MappingRequest(vendor_id="0d8c", product_id="0014", friendly_name="last-speaker"),
    ]

    batch = service.map_many(requests)

    assert batch.outcome == "partial"
    assert [r.request.friendly_name for r in batch.results] == ["first-mic", "last-speaker"]
    assert [f.request.friendly_name for f in batch.failures] == ["card-mic"]
    assert "Cannot access" in batch.failures[0].error


def test_friendly_name_with_newline_never_reaches_rule_file(tmp_path: Path, host: FakeHost) -> None:
    service = MapperService(_settings(tmp_path))

    batch = service.map_many(
        [MappingRequest(vendor_id="2e88", product_id="4610", friendly_name="movo-mic\n")]
    )

    assert batch.outcome == "failure"
    assert "Invalid friendly name" in batch.failures[0].error
    assert not (tmp_path / "rules.d/99-usb-soundcards.rules").exists()
