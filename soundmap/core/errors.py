"""Domain-specific errors for soundmap."""


class SoundmapError(Exception):
    """Base error for soundmap."""


class ValidationError(SoundmapError):
    """Raised when a vendor id, product id, friendly name or port hint is malformed."""


class RuleStoreError(SoundmapError):
    """Raised when the rule file cannot be created, written or renamed into place."""


class ConfigError(SoundmapError):
    """Raised when the settings file cannot be read or does not match its schema."""


class BatchFileError(SoundmapError):
    """Raised when a batch device file cannot be read or does not match its schema."""


class DeviceLookupError(SoundmapError):
    """Raised when a requested USB device or sound card is not present."""


class EnumerationError(SoundmapError):
    """Raised when USB or sound card enumeration commands fail outright."""


class ReloadError(SoundmapError):
    """Raised when the udev rule reload command fails."""
