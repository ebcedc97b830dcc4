"""Errors raised while building endpoints."""

from dataclasses import dataclass
from typing import Optional

APIGATEWAY = 'apigateway'
LAMBDA = 'lambda'
VALIDATION = 'validation'


class EndpointBuilderError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(EndpointBuilderError):
    """Invalid settings or project file."""


class PreconditionError(EndpointBuilderError):
    """Raised before any remote call when the run inputs are incomplete."""


class RemoteCallError(EndpointBuilderError):
    """A remote service answered, but not with what the run needs."""

    def __init__(self, component: str, operation: str, message: str,
                 code: Optional[str] = None):
        super().__init__(message)
        self.component = component
        self.operation = operation
        self.message = message
        self.code = code

    def __str__(self):
        return f"[{self.component}] {self.operation}: {self.message}"


class EndpointBuildError(EndpointBuilderError):
    """A run aborted at one of its steps."""

    def __init__(self, endpoint: str, step: str, component: str, message: str):
        super().__init__(message)
        self.endpoint = endpoint
        self.step = step
        self.component = component
        self.message = message

    def __str__(self):
        return f"{self.endpoint} failed at {self.step} [{self.component}]: {self.message}"


@dataclass(frozen=True)
class NotFound:
    """Result of a lookup whose target does not exist remotely."""
    operation: str
    message: str = ''

    def __bool__(self):
        return False
