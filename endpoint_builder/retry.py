"""
Retrying wrapper around boto3 clients.

Control-plane APIs for API Gateway and Lambda are rate-limited and take a
moment to propagate mutations, so every call that lists, creates or mutates
resources goes through `RetryingClient.call`.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Union

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .config import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_DELAY
from .errors import NotFound

logger = logging.getLogger(__name__)

RETRYABLE_ERROR_CODES = frozenset([
    'TooManyRequestsException',
    'ThrottlingException',
    'Throttling',
    'RequestLimitExceeded',
    'ServiceUnavailableException',
    'ServiceException',
    'InternalFailure',
    'LimitExceededException',
])

RETRYABLE_TRANSPORT_ERRORS = (
    EndpointConnectionError,
    ConnectionClosedError,
    ReadTimeoutError,
    ConnectTimeoutError,
)

NOT_FOUND_CODES = frozenset(['NotFoundException', 'ResourceNotFoundException'])


def error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code', '')
    return type(error).__name__


def error_message(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Message') or str(error)
    return str(error)


def is_retryable(error: Exception) -> bool:
    if isinstance(error, ClientError):
        return error_code(error) in RETRYABLE_ERROR_CODES
    return isinstance(error, RETRYABLE_TRANSPORT_ERRORS)


class RetryingClient:
    """Issues calls against a boto3 client, retrying throttling failures."""

    def __init__(self, client, component: str,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 base_delay: float = DEFAULT_BASE_DELAY,
                 max_delay: float = DEFAULT_MAX_DELAY,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.component = component
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def call(self, operation: str, **params) -> Dict[str, Any]:
        """Call `operation`; the last error is re-raised unchanged once attempts run out."""
        method = getattr(self.client, operation)
        attempt = 1
        while True:
            try:
                return method(**params)
            except (ClientError, BotoCoreError) as e:
                if not is_retryable(e) or attempt >= self.max_attempts:
                    raise
                wait_time = self.backoff(attempt)
                logger.warning(
                    f"{error_code(e)} on {self.component}.{operation} attempt "
                    f"{attempt}/{self.max_attempts}, waiting {wait_time}s...")
                self._sleep(wait_time)
                attempt += 1

    def fetch(self, operation: str,
              not_found_codes: Iterable[str] = NOT_FOUND_CODES,
              **params) -> Union[Dict[str, Any], NotFound]:
        """Like `call`, but a missing target comes back as a `NotFound` value."""
        try:
            return self.call(operation, **params)
        except ClientError as e:
            if error_code(e) in not_found_codes:
                return NotFound(operation, error_message(e))
            raise

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return lambda **params: self.call(name, **params)
