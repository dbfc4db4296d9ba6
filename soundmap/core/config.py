"""Settings loading and validation for YAML-based soundmap configuration."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validators

from soundmap.core.errors import ConfigError

DEFAULT_RULES_FILE = Path("/etc/udev/rules.d/99-usb-soundcards.rules")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys.

    Booleans are not resolved, so plain scalars such as ``on`` or ``no`` stay
    strings. Every settings and batch field is a string or integer, and
    ``friendly_name: on`` is a valid name.
    """


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


class DuplicateKeyError(yaml.YAMLError):
    pass


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise DuplicateKeyError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    rules_file: Path = DEFAULT_RULES_FILE
    sysfs_root: Path = Path("/sys")
    dev_root: Path = Path("/dev")
    asound_root: Path = Path("/proc/asound")
    udevadm: str = "udevadm"
    lsusb: str = "lsusb"
    symlink_namespace: str = "sound/by-id"
    log_level: str = "WARNING"

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        for key in ("rules_file", "sysfs_root", "dev_root", "asound_root"):
            if key in changes:
                changes[key] = Path(changes[key])
        if "log_level" in changes:
            changes["log_level"] = str(changes["log_level"]).upper()
        return replace(self, **changes)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("soundmap.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def read_yaml_mapping(path: Path, *, error_cls: type[Exception]) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise error_cls(f"Could not read {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise error_cls(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise error_cls(f"{path} must contain a mapping at root")
    return loaded


def validate_document(doc: dict[str, Any], schema_name: str, source: Path, *, error_cls: type[Exception]) -> None:
    validator = load_schema_validator(schema_name)
    try:
        validator.validate(doc)
    except SchemaValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise error_cls(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "soundmap/config.yaml"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from ``path`` or the XDG config file, falling back to defaults.

    An explicitly given path must exist; the XDG file is optional.
    """
    if path is None:
        path = default_config_path()
        if not path.is_file():
            LOGGER.debug("No settings file at %s, using defaults", path)
            return Settings()

    doc = read_yaml_mapping(path, error_cls=ConfigError)
    validate_document(doc, "config.schema.json", path, error_cls=ConfigError)

    known = {f.name for f in fields(Settings)}
    settings = Settings().with_overrides(**{k: v for k, v in doc.items() if k in known})
    LOGGER.debug("Loaded settings from %s", path)
    return settings
