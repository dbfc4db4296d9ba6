"""Batch device files for scripted multi-device mapping."""

from __future__ import annotations

from pathlib import Path

from soundmap.core.config import read_yaml_mapping, validate_document
from soundmap.core.errors import BatchFileError
from soundmap.core.model import MappingRequest, UsbAddress


def load_batch(path: Path) -> list[MappingRequest]:
    """Load ``devices:`` entries as unvalidated mapping requests.

    Field formats (ids, friendly names, ports) are checked per device by the
    service so that one bad entry does not reject the whole file.
    """
    doc = read_yaml_mapping(path, error_cls=BatchFileError)
    validate_document(doc, "batch.schema.json", path, error_cls=BatchFileError)

    requests: list[MappingRequest] = []
    for entry in doc["devices"]:
        address = None
        if "bus" in entry and "device" in entry:
            address = UsbAddress(bus=int(entry["bus"]), device=int(entry["device"]))
        requests.append(
            MappingRequest(
                vendor_id=entry["vendor_id"],
                product_id=entry["product_id"],
                friendly_name=entry["friendly_name"],
                address=address,
                port=entry.get("port"),
                card_index=entry.get("card"),
                card_label=entry.get("name"),
            )
        )
    return requests
