"""Exceptions shared by the services and the command-line scripts."""


class PipelineError(Exception):
    """Base class for fatal pipeline errors."""


class ConfigurationError(PipelineError):
    """Required configuration (e.g. media host credentials) is missing."""


class MediaHostError(PipelineError):
    """The media host listing could not be fetched."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
