"""Append-only, crash-safe persistence of rule records.

A commit copies the current file into a temporary file in the same
directory, appends the new record, and renames the temporary file over the
target. Readers therefore see either the old or the new complete file.
Only one writer at a time is supported.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from soundmap.core.errors import RuleStoreError
from soundmap.core.model import RuleRecord
from soundmap.core.rules import assigned_names

LOGGER = logging.getLogger(__name__)

RULE_FILE_MODE = 0o644


class RuleStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as exc:
            raise RuleStoreError(f"Could not read {self.path}: {exc}") from exc

    def has_name(self, friendly_name: str) -> bool:
        return friendly_name in assigned_names(self.read())

    def commit(self, record: RuleRecord) -> Path:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuleStoreError(f"Could not create {directory}: {exc}") from exc

        try:
            existing = self.path.read_bytes()
        except FileNotFoundError:
            existing = b""
        except OSError as exc:
            raise RuleStoreError(f"Could not read {self.path}: {exc}") from exc

        payload = record.render().encode("utf-8")
        if existing and not existing.endswith(b"\n"):
            payload = b"\n" + payload

        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
        except OSError as exc:
            raise RuleStoreError(f"Could not create temporary file in {directory}: {exc}") from exc

        tmp_path = Path(tmp_name)
        committed = False
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(existing)
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_path, RULE_FILE_MODE)
            os.replace(tmp_path, self.path)
            committed = True
        except OSError as exc:
            raise RuleStoreError(f"Failed to write to {self.path}: {exc}") from exc
        finally:
            if not committed:
                _discard(tmp_path)

        LOGGER.info("Appended %d rule line(s) to %s", len(record.lines()) - 1, self.path)
        return self.path


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove temporary file %s: %s", path, exc)
