from __future__ import annotations

from pathlib import Path

import pytest

from soundmap.core.batch import load_batch
from soundmap.core.errors import BatchFileError
from soundmap.core.model import UsbAddress


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "devices.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_batch(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """\
devices:
  - vendor_id: "2e88"
    product_id: "4610"
    friendly_name: movo-mic
    name: MOVO X1 MINI
    port: usb-3.4
  - vendor_id: "0d8c"
    product_id: "0014"
    friendly_name: desk-speaker
    bus: 1
    device: 7
    card: 2
""",
    )

    requests = load_batch(path)

    assert len(requests) == 2
    first, second = requests
    assert first.friendly_name == "movo-mic"
    assert first.card_label == "MOVO X1 MINI"
    assert first.port == "usb-3.4"
    assert first.address is None
    assert second.address == UsbAddress(bus=1, device=7)
    assert second.card_index == 2
    assert second.product_id == "0014"


def test_field_formats_are_left_to_the_service(tmp_path: Path) -> None:
    path = _write(tmp_path, 'devices:\n  - {vendor_id: "zz", product_id: "4610", friendly_name: Bad}\n')

    [request] = load_batch(path)

    assert request.vendor_id == "zz"
    assert request.friendly_name == "Bad"


@pytest.mark.parametrize(
    "text",
    [
        "devices: []\n",
        "other: 1\n",
        'devices:\n  - {vendor_id: "2e88", product_id: "4610"}\n',
        'devices:\n  - {vendor_id: "2e88", product_id: "4610", friendly_name: a, bus: 1}\n',
        'devices:\n  - {vendor_id: "2e88", product_id: 4610, friendly_name: a}\n',
    ],
)
def test_invalid_batch_files(tmp_path: Path, text: str) -> None:
    with pytest.raises(BatchFileError) as excinfo:
        load_batch(_write(tmp_path, text))
    assert "Schema validation failed" in str(excinfo.value)


def test_missing_batch_file(tmp_path: Path) -> None:
    with pytest.raises(BatchFileError):
        load_batch(tmp_path / "absent.yaml")


def test_yes_no_scalars_stay_strings(tmp_path: Path) -> None:
    path = _write(tmp_path, 'devices:\n  - {vendor_id: "2e88", product_id: "4610", friendly_name: on, name: no}\n')

    [request] = load_batch(path)

    assert request.friendly_name == "on"
    assert request.card_label == "no"
