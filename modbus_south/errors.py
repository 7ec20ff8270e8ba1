"""Custom exceptions for the Modbus south plugin."""


class ConfigError(Exception):
    """Raised when config is invalid or missing."""


class InvalidHandleError(Exception):
    """Raised when a plugin call is made without a live session."""


class PublishError(Exception):
    """Raised when a measurement cannot be published downstream."""
