"""
Endpoint Builder

Provisions a single API Gateway endpoint (resource tree, method, Lambda
integration, responses and invoke permission) and converges it toward the
populated endpoint description on every run.
"""

from .builder import EndpointBuilder
from .errors import (
    ConfigurationError,
    EndpointBuildError,
    EndpointBuilderError,
    NotFound,
    PreconditionError,
    RemoteCallError,
)
from .models import BuildRequest, BuildResult, Endpoint
from .runner import BuildSummary, build_endpoints

__all__ = [
    'BuildRequest',
    'BuildResult',
    'BuildSummary',
    'ConfigurationError',
    'Endpoint',
    'EndpointBuildError',
    'EndpointBuilder',
    'EndpointBuilderError',
    'NotFound',
    'PreconditionError',
    'RemoteCallError',
    'build_endpoints',
]
