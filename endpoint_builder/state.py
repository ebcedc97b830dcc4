"""
State lookups the builder depends on.

`Project` reads a YAML project file whose endpoint descriptions are already
populated (no templates or variables left). `AwsStateProvider` adds the remote
lookups for the REST API and the deployed Lambda function.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from jsonschema import Draft202012Validator

from .errors import APIGATEWAY, ConfigurationError, LAMBDA, NotFound, RemoteCallError
from .models import BuildRequest, DeployedFunction, RestApi, normalize_path
from .retry import RetryingClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 500

PROJECT_SCHEMA = {
    "type": "object",
    "required": ["stages", "functions"],
    "properties": {
        "name": {"type": "string"},
        "stages": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["regions"],
                "properties": {
                    "regions": {
                        "type": "object",
                        "additionalProperties": {
                            "type": "object",
                            "properties": {
                                "variables": {"type": "object"}
                            }
                        }
                    }
                }
            }
        },
        "functions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "deployedName": {"type": "string", "minLength": 1},
                    "endpoints": {
                        "type": "array",
                        "items": {"type": "object"}
                    }
                }
            }
        }
    }
}


@dataclass(frozen=True)
class ProjectEndpoint:
    function_name: str
    description: Dict[str, Any]

    @property
    def path(self) -> str:
        return normalize_path(self.description.get('path') or '')

    @property
    def method(self) -> str:
        return str(self.description.get('method') or '').upper()


class Project:
    """Populated project definition: stages, regions and function endpoints."""

    def __init__(self, document: Dict[str, Any]):
        errors = sorted(Draft202012Validator(PROJECT_SCHEMA).iter_errors(document),
                        key=lambda e: list(e.path))
        if errors:
            details = '; '.join(
                f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}"
                for e in errors)
            raise ConfigurationError(f"Invalid project file: {details}")
        self.document = document
        self.name = document.get('name', '')

    def stage_variables(self, stage: str, region: str) -> Dict[str, Any]:
        try:
            region_config = self.document['stages'][stage]['regions'][region]
        except KeyError:
            raise ConfigurationError(
                f"Stage {stage!r} has no region {region!r} in the project")
        return region_config.get('variables') or {}

    def endpoints(self) -> List[ProjectEndpoint]:
        found = []
        for function in self.document['functions']:
            deployed_name = function.get('deployedName') or function['name']
            for description in function.get('endpoints') or []:
                found.append(ProjectEndpoint(deployed_name, description))
        return found

    def get_endpoints_by_path(self, paths: Optional[Iterable[str]] = None,
                              method: Optional[str] = None) -> List[ProjectEndpoint]:
        """Endpoints whose path is in `paths` (all when None), optionally one method."""
        wanted = {normalize_path(p) for p in paths} if paths else None
        return [e for e in self.endpoints()
                if (wanted is None or e.path in wanted)
                and (method is None or e.method == method.upper())]

    def build_requests(self, stage: str, region: str,
                       endpoints: Optional[Iterable[ProjectEndpoint]] = None,
                       alias: Optional[str] = None) -> List[BuildRequest]:
        """One request per endpoint (all of the project's when None)."""
        variables = self.stage_variables(stage, region)
        if endpoints is None:
            endpoints = self.endpoints()
        return [
            BuildRequest(
                endpoint=e.description,
                stage=stage,
                region=region,
                iam_role_arn=variables.get('iamRoleArnLambda'),
                rest_api_name=variables.get('apiGatewayApi'),
                function_name=e.function_name,
                alias=alias,
            )
            for e in endpoints
        ]


def load_project(path: str) -> Project:
    """Load and validate a project file."""
    project_file = Path(path)
    if not project_file.exists():
        raise ConfigurationError(f"Project file not found: {project_file}")

    with open(project_file, 'r', encoding='utf-8') as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Project file is not valid YAML: {e}")

    if document is None:
        raise ConfigurationError("Project file is empty")
    return Project(document)


class StateProvider:
    """Typed lookups of sibling entities, handed to the builder explicitly."""

    def get_rest_api_by_name(self, name: str) -> Optional[RestApi]:
        raise NotImplementedError

    def get_deployed_function(self, function_name: str,
                              stage: str) -> Optional[DeployedFunction]:
        raise NotImplementedError

    def get_endpoints_by_path(self, paths: Optional[Iterable[str]] = None,
                              method: Optional[str] = None) -> List[ProjectEndpoint]:
        raise NotImplementedError


class AwsStateProvider(StateProvider):

    def __init__(self, apigateway: RetryingClient, lambda_client: RetryingClient,
                 project: Optional[Project] = None):
        self.apigateway = apigateway
        self.lambda_client = lambda_client
        self.project = project

    def get_rest_api_by_name(self, name: str) -> Optional[RestApi]:
        params = {'limit': PAGE_SIZE}
        while True:
            response = self.apigateway.get_rest_apis(**params)
            for api in response.get('items', []):
                if api.get('name') == name:
                    return RestApi(id=api['id'], name=api['name'])
            position = response.get('position')
            if not position:
                return None
            params['position'] = position

    def get_deployed_function(self, function_name: str,
                              stage: str) -> Optional[DeployedFunction]:
        response = self.lambda_client.fetch(
            'get_function', FunctionName=function_name, Qualifier=stage)
        if isinstance(response, NotFound):
            return None
        configuration = response['Configuration']
        return DeployedFunction(
            name=configuration['FunctionName'],
            arn=configuration['FunctionArn'],
        )

    def get_endpoints_by_path(self, paths: Optional[Iterable[str]] = None,
                              method: Optional[str] = None) -> List[ProjectEndpoint]:
        if self.project is None:
            return []
        return self.project.get_endpoints_by_path(paths, method)


def require_rest_api(state: StateProvider, name: str) -> RestApi:
    rest_api = state.get_rest_api_by_name(name)
    if rest_api is None:
        raise RemoteCallError(APIGATEWAY, 'get_rest_apis',
                              f"API Gateway REST API with the name {name} was not found")
    return rest_api


def require_deployed_function(state: StateProvider, function_name: str,
                              stage: str) -> DeployedFunction:
    deployed = state.get_deployed_function(function_name, stage)
    if deployed is None:
        raise RemoteCallError(LAMBDA, 'get_function',
                              f"Lambda function {function_name}:{stage} was not found")
    return deployed
