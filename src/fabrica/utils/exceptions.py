"""Custom exceptions for Fabrica."""


class FabricaError(Exception):
    """Base exception for all Fabrica errors."""

    pass


class ConfigurationError(FabricaError):
    """Error in configuration or settings."""

    pass
