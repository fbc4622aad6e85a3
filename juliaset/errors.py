from typing import Optional


class JuliaError(Exception):
    """Base class for every error raised by juliaset."""


class ConfigurationError(JuliaError, ValueError):
    """Invalid or missing render configuration; raised before any work is scheduled."""


class ComputeFailure(JuliaError, RuntimeError):
    """A unit of work failed. The render is aborted as a whole."""

    def __init__(self, message: str, *, pixel=None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.pixel = pixel
        # pickled with the error, unlike __cause__
        self.cause = cause


class AssemblyError(JuliaError, RuntimeError):
    """The output grid was incomplete, or a cell was written more than once."""
