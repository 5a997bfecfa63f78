from __future__ import annotations


class UpxToolsError(Exception):
    """Base error; ``str(err)`` is the message shown to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ToolNotFoundError(UpxToolsError):
    """No UPX executable could be located or extracted."""


class PreconditionError(UpxToolsError):
    """The job was rejected before UPX was started."""


class LaunchError(UpxToolsError):
    """The UPX process could not be spawned at all."""


class ScanError(UpxToolsError):
    """Folder scan was given a missing path or a non-directory."""


class ConfigError(UpxToolsError):
    """The config file exists but could not be read or parsed."""


class UpdateError(UpxToolsError):
    """Raised when the release feed cannot be queried or an update downloaded."""
