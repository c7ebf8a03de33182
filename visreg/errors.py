"""Exception types shared across the visual regression pipeline."""

from __future__ import annotations


class VisualRegressionError(RuntimeError):
    """Base class for pipeline errors."""


class DiscoveryError(VisualRegressionError):
    """The component catalog could not be built from the docs site."""


class CaptureError(VisualRegressionError):
    """The rendering worker rejected a batch capture request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PublishError(VisualRegressionError):
    """An upload or comment call against the source-hosting API failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialError(VisualRegressionError, EnvironmentError):
    """A credential required for publication is not configured."""
