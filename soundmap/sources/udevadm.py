"""udev device-manager queries via the ``udevadm`` command."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

from soundmap.core.errors import ReloadError

LOGGER = logging.getLogger(__name__)

_ATTR_LINE_RE = re.compile(r'^\s*ATTRS?\{([^}]+)\}=="(.*)"\s*$')


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``udevadm info --query=property`` output into a mapping.

    The first occurrence of a key wins; lines without ``=`` are ignored.
    """
    properties: dict[str, str] = {}
    for line in text.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key and key not in properties:
            properties[key] = value.strip()
    return properties


def parse_attribute_walk(text: str) -> dict[str, str]:
    """Parse ``udevadm info -a`` output into the nearest value of each attribute.

    The walk lists the device first and then its parents, so the first
    occurrence of an attribute belongs to the closest device that has it.
    """
    attributes: dict[str, str] = {}
    for line in text.splitlines():
        match = _ATTR_LINE_RE.match(line)
        if not match:
            continue
        name, value = match.group(1), match.group(2)
        if name not in attributes:
            attributes[name] = value
    return attributes


class UdevAdm:
    def __init__(self, binary: str = "udevadm") -> None:
        self.binary = binary

    def properties(self, node: Path) -> dict[str, str] | None:
        result = self._query(["info", f"--name={node}", "--query=property"])
        if result is None:
            return None
        properties = parse_properties(result)
        return properties or None

    def attribute_walk(self, node: Path) -> dict[str, str] | None:
        result = self._query(["info", "--attribute-walk", f"--name={node}"])
        if result is None:
            return None
        attributes = parse_attribute_walk(result)
        return attributes or None

    def reload_rules(self) -> None:
        cmd = [self.binary, "control", "--reload-rules"]
        result = _run_command(cmd)
        if result is None:
            raise ReloadError(f"'{self.binary}' is not installed; reload udev rules manually.")
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise ReloadError(f"Failed to reload udev rules: {stderr or f'exit status {result.returncode}'}")
        LOGGER.info("Reloaded udev rules")

    def _query(self, args: Sequence[str]) -> str | None:
        cmd = [self.binary, *args]
        result = _run_command(cmd)
        if result is None:
            LOGGER.debug("%s is not available", self.binary)
            return None
        if result.returncode != 0:
            LOGGER.debug("%s -> %s", " ".join(cmd), (result.stderr or "").strip())
            return None
        output = result.stdout or ""
        return output if output.strip() else None


def _run_command(cmd: Sequence[str]) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        return None
