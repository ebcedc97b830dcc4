"""Resource tree resolution: make sure every path segment of an endpoint exists."""

import logging
from typing import Dict, Iterator, Optional, Tuple

from botocore.exceptions import ClientError

from .errors import APIGATEWAY, RemoteCallError
from .models import ApiResource, RunContext
from .retry import RetryingClient, error_code

logger = logging.getLogger(__name__)

ROOT_PATH = '/'
PAGE_SIZE = 500


def parent_path(path: str) -> str:
    """'/a' -> '/', '/a/b' -> '/a'."""
    if path.count('/') <= 1:
        return ROOT_PATH
    return path[:path.rfind('/')]


def iter_prefixes(path: str) -> Iterator[Tuple[str, str]]:
    """Yield (prefix, segment) pairs from the root toward the leaf."""
    prefix = ''
    for segment in path.strip('/').split('/'):
        if not segment:
            continue
        prefix = f"{prefix}/{segment}"
        yield prefix, segment


class ResourceTreeResolver:
    """Creates missing ancestor and leaf resources for an endpoint path."""

    def __init__(self, apigateway: RetryingClient):
        self.apigateway = apigateway

    def list_resources(self, rest_api_id: str) -> Dict[str, ApiResource]:
        """All resources of a REST API, keyed by path."""
        resources = {}
        params = {'restApiId': rest_api_id, 'limit': PAGE_SIZE}
        while True:
            response = self.apigateway.get_resources(**params)
            for item in response.get('items', []):
                resource = ApiResource.from_response(item)
                resources[resource.path] = resource
            position = response.get('position')
            if not position:
                return resources
            params['position'] = position

    def resolve(self, ctx: RunContext) -> RunContext:
        path = ctx.endpoint.path
        resources = ctx.resources

        if path in resources:
            ctx.resource = resources[path]
            ctx.resource_parent = self._parent_of(resources, path)
            logger.info(
                f'"{ctx.label}": no resources need to be created for this endpoint')
            return ctx

        for prefix, segment in iter_prefixes(path):
            if prefix in resources:
                continue

            parent = resources.get(parent_path(prefix))
            if parent is None:
                raise RemoteCallError(
                    APIGATEWAY, 'create_resource',
                    f"Parent resource of {prefix} does not exist")

            resource = self._create(ctx, parent, segment, prefix)
            resources[prefix] = resource

        ctx.resource = resources[path]
        ctx.resource_parent = self._parent_of(resources, path)
        return ctx

    def _create(self, ctx: RunContext, parent: ApiResource, segment: str,
                prefix: str) -> ApiResource:
        try:
            response = self.apigateway.create_resource(
                restApiId=ctx.rest_api.id,
                parentId=parent.id,
                pathPart=segment
            )
        except ClientError as e:
            if error_code(e) != 'ConflictException':
                raise
            # Lost a create race against a concurrent run; adopt the winner's resource.
            logger.info(
                f'"{ctx.label}": resource {prefix} was created concurrently, reloading')
            ctx.resources.update(self.list_resources(ctx.rest_api.id))
            if prefix not in ctx.resources:
                raise
            return ctx.resources[prefix]

        resource = ApiResource.from_response(response)
        ctx.created_resources.append(resource)
        logger.info(f'"{ctx.label}": created resource: {segment}')
        return resource

    @staticmethod
    def _parent_of(resources: Dict[str, ApiResource],
                   path: str) -> Optional[ApiResource]:
        if path == ROOT_PATH:
            return None
        return resources.get(parent_path(path))
