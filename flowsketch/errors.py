"""Exceptions raised by FlowSketch collaborators.

Every failure is scoped to the operation that raised it; the editor reports
the message and leaves the current document untouched.
"""


class DiagramError(Exception):
    """Base class for recoverable diagram editing failures."""


class ConfigurationError(DiagramError):
    """Raised when generation credentials or endpoints are missing."""


class TransportError(DiagramError):
    """Raised when a remote call fails at the network or protocol level."""


class MalformedResponseError(DiagramError):
    """Raised when a generation response does not contain a usable graph."""


class ValidationError(DiagramError):
    """Raised when a document payload does not match the diagram schema."""


class PersistenceError(DiagramError):
    """Raised when saving or loading the remote copy fails."""
