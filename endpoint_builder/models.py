"""
Data model for one endpoint build run.

`Endpoint` is the desired state handed over by the project loader, fully
populated. Everything else is discovered from, or created in, the remote
services while the run executes.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import PreconditionError

DEFAULT_RESPONSE_KEY = 'default'
ROLE_ARN_PATTERN = re.compile(r'^arn:aws[\w-]*:iam::(\d{12}):')

BOOLEAN_STRINGS = {'true': True, 'false': False}

REQUIRED_FIELDS = [
    'path',
    'method',
    'authorizationType',
    'apiKeyRequired',
    'requestTemplates',
    'requestParameters',
    'responses',
]



def _mapping(owner: str, name: str, value: Any) -> Dict[str, Any]:
    """Optional mapping field; missing or null means empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PreconditionError(f'{owner} "{name}" must be a mapping')
    return dict(value)


def _boolean(owner: str, name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in BOOLEAN_STRINGS:
        return BOOLEAN_STRINGS[value.strip().lower()]
    raise PreconditionError(f'{owner} "{name}" must be true or false, got {value!r}')


@dataclass(frozen=True)
class ResponseSpec:
    status_code: str
    response_parameters: Dict[str, Any] = field(default_factory=dict)
    response_models: Dict[str, str] = field(default_factory=dict)
    response_templates: Dict[str, str] = field(default_factory=dict)
    selection_pattern: Optional[str] = None

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> 'ResponseSpec':
        if not isinstance(data, dict):
            raise PreconditionError(f'Response "{key}" must be a mapping')
        status_code = data.get('statusCode')
        if status_code is None:
            raise PreconditionError(
                f'Response "{key}" does not have a "statusCode" property')
        owner = f'Response "{key}"'
        return cls(
            status_code=str(status_code),
            response_parameters=_mapping(owner, 'responseParameters',
                                         data.get('responseParameters')),
            response_models=_mapping(owner, 'responseModels', data.get('responseModels')),
            response_templates=_mapping(owner, 'responseTemplates',
                                        data.get('responseTemplates')),
            selection_pattern=data.get('selectionPattern') or None,
        )


@dataclass(frozen=True)
class Endpoint:
    """Desired state of one HTTP endpoint."""
    path: str
    method: str
    authorization_type: str
    api_key_required: bool
    request_parameters: Dict[str, str]
    request_templates: Dict[str, Any]
    responses: Dict[str, ResponseSpec]
    type: str = 'AWS'
    request_models: Dict[str, str] = field(default_factory=dict)
    cache_key_parameters: List[str] = field(default_factory=list)
    cache_namespace: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Endpoint':
        """Validate and sanitize a populated endpoint description."""
        if not isinstance(data, dict):
            raise PreconditionError("Endpoint description must be a mapping")

        for name in REQUIRED_FIELDS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value):
                raise PreconditionError(
                    f'Endpoint does not have a "{name}" property')

        responses = data['responses']
        if not isinstance(responses, dict):
            raise PreconditionError('Endpoint "responses" must be a mapping')

        cache_key_parameters = data.get('cacheKeyParameters') or []
        if not isinstance(cache_key_parameters, list):
            raise PreconditionError('Endpoint "cacheKeyParameters" must be a list')

        owner = 'Endpoint'
        return cls(
            path=normalize_path(data['path']),
            method=str(data['method']).upper(),
            authorization_type=data['authorizationType'],
            api_key_required=_boolean(owner, 'apiKeyRequired', data['apiKeyRequired']),
            request_parameters=_mapping(owner, 'requestParameters', data['requestParameters']),
            request_templates=_mapping(owner, 'requestTemplates', data['requestTemplates']),
            responses={str(key): ResponseSpec.from_dict(str(key), value)
                       for key, value in responses.items()},
            type=data.get('type') or 'AWS',
            request_models=_mapping(owner, 'requestModels', data.get('requestModels')),
            cache_key_parameters=list(cache_key_parameters),
            cache_namespace=data.get('cacheNamespace') or None,
        )


def normalize_path(path: str) -> str:
    """Canonical resource path: leading slash, no trailing or repeated slashes."""
    return '/' + '/'.join(s for s in str(path).strip().split('/') if s)


def account_number_from_role_arn(role_arn: Optional[str]) -> str:
    if not role_arn:
        raise PreconditionError('No Lambda IAM Role found')
    match = ROLE_ARN_PATTERN.match(role_arn)
    if not match:
        raise PreconditionError(
            f"Cannot derive an account number from IAM role ARN: {role_arn}")
    return match.group(1)


@dataclass(frozen=True)
class RestApi:
    id: str
    name: str


@dataclass(frozen=True)
class ApiResource:
    id: str
    path: str
    parent_id: Optional[str] = None
    path_part: Optional[str] = None

    @classmethod
    def from_response(cls, item: Dict[str, Any]) -> 'ApiResource':
        return cls(
            id=item['id'],
            path=item['path'],
            parent_id=item.get('parentId'),
            path_part=item.get('pathPart'),
        )


@dataclass
class DeployedFunction:
    name: str
    arn: str
    policy: Optional[Dict[str, Any]] = None

    def statement_ids(self) -> List[str]:
        if not self.policy:
            return []
        return [s.get('Sid') for s in self.policy.get('Statement', [])
                if s.get('Sid')]

    def statement(self, sid: str) -> Optional[Dict[str, Any]]:
        if not self.policy:
            return None
        for s in self.policy.get('Statement', []):
            if s.get('Sid') == sid:
                return s
        return None


@dataclass(frozen=True)
class BuildRequest:
    """
    Everything the upstream loader supplies for one run.

    `endpoint` may still be the raw populated description; the run validates
    it before any remote call is made.
    """
    endpoint: Union[Endpoint, Dict[str, Any]]
    stage: str
    region: str
    iam_role_arn: Optional[str]
    rest_api_name: Optional[str]
    function_name: Optional[str]
    alias: Optional[str] = None

    @property
    def path(self) -> str:
        if isinstance(self.endpoint, Endpoint):
            return self.endpoint.path
        return str(self.endpoint.get('path') or '?')

    @property
    def method(self) -> str:
        if isinstance(self.endpoint, Endpoint):
            return self.endpoint.method
        return str(self.endpoint.get('method') or '?').upper()

    @property
    def label(self) -> str:
        return f"{self.stage} - {self.region} - {self.path}"


@dataclass
class RunContext:
    """Accumulated state of a single run, threaded through every step."""
    request: BuildRequest
    endpoint: Optional[Endpoint] = None
    account_number: Optional[str] = None
    rest_api: Optional[RestApi] = None
    deployed_function: Optional[DeployedFunction] = None
    resources: Dict[str, ApiResource] = field(default_factory=dict)
    resource: Optional[ApiResource] = None
    resource_parent: Optional[ApiResource] = None
    created_resources: List[ApiResource] = field(default_factory=list)
    previous_integration: Optional[Dict[str, Any]] = None
    integration: Optional[Dict[str, Any]] = None
    statement_id: Optional[str] = None

    @property
    def stage(self) -> str:
        return self.request.stage

    @property
    def region(self) -> str:
        return self.request.region

    @property
    def label(self) -> str:
        if self.endpoint is None:
            return self.request.label
        return f"{self.stage} - {self.region} - {self.endpoint.path}"


@dataclass(frozen=True)
class BuildResult:
    endpoint: str
    url: str
    rest_api_id: str
    resource_id: str
    created_resource_ids: List[str]
    statement_id: str
