"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class FigmaImgsError(Exception):
    """Base exception for all application-specific errors."""


class InputError(FigmaImgsError):
    """Raised when the caller-supplied input cannot be used."""


class InvalidUrlError(InputError):
    """Raised when a design URL lacks a file key or a node id."""


class AuthorizationError(FigmaImgsError):
    """Raised when the Figma API rejects the personal access token."""


class CandidateFetchError(FigmaImgsError):
    """
    Raised when the exportable assets or their download URLs cannot be resolved.
    """


class ConfigurationError(FigmaImgsError):
    """Raised for issues related to configuration loading or validation."""
