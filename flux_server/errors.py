from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PROCESSING = "processing"


class FluxError(Exception):
    """An error surfaced to the MCP client, tagged with its kind."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def is_validation(self) -> bool:
        return self.kind is ErrorKind.VALIDATION


class ConfigError(Exception):
    """Invalid configuration. Only raised at startup."""


def validation_error(message: str) -> FluxError:
    return FluxError(ErrorKind.VALIDATION, message)


def processing_error(message: str) -> FluxError:
    return FluxError(ErrorKind.PROCESSING, message)
