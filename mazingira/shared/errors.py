from __future__ import annotations

from typing import Any, Optional


class MazingiraError(Exception):
    """Base class for every typed failure the agent surfaces."""


class ConfigurationError(MazingiraError):
    pass


class TransportError(MazingiraError):
    """Network or backend failure talking to the generative API."""


class DecodeError(MazingiraError):
    """Audio payload is malformed or truncated."""


class SchemaValidationError(MazingiraError):
    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class JobFailed(MazingiraError):
    def __init__(self, message: str, status: Any = None):
        super().__init__(message)
        self.status = status


class JobTimeoutError(MazingiraError, TimeoutError):
    def __init__(self, message: str, status: Any = None):
        super().__init__(message)
        self.status = status


class StreamInterrupted(MazingiraError):
    def __init__(self, partial_text: str, message: str = "stream interrupted"):
        super().__init__(message)
        self.partial_text = partial_text


class BusyError(MazingiraError):
    """The requested operation already has one instance in flight."""


class ChatBusyError(BusyError):
    """A reply is already streaming for this conversation."""
