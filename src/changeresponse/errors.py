"""Exceptions raised by changeresponse."""


class ChangeResponseError(Exception):
    """Base class for changeresponse errors."""


class ConfigError(ChangeResponseError, ValueError):
    """Invalid configuration, detected before the engine is built."""


class UnsupportedBodyModeError(ChangeResponseError):
    """An override rule names a body mode the engine does not know."""

    def __init__(self, mode: str) -> None:
        super().__init__(f"Unsupported override mode: {mode}")
        self.mode = mode


class MissingStatusError(ChangeResponseError):
    """The upstream handler returned without declaring a status."""
