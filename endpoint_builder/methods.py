"""HTTP method reconciliation on the leaf resource."""

import logging
from typing import Dict

from .errors import NotFound
from .models import Endpoint, RunContext
from .retry import RetryingClient

logger = logging.getLogger(__name__)


def method_request_parameters(endpoint: Endpoint) -> Dict[str, bool]:
    """
    Declare every mapped source expression on the method.

    Only the names are declared, the integration carries the mapping itself.
    """
    return {source: True for source in endpoint.request_parameters.values()}


class MethodReconciler:
    """
    Replaces the endpoint method with the desired configuration.

    In-place updates of methods leave stale fields behind, so an existing
    method is always deleted and created again.
    """

    def __init__(self, apigateway: RetryingClient):
        self.apigateway = apigateway

    def reconcile(self, ctx: RunContext) -> RunContext:
        endpoint = ctx.endpoint
        key = {
            'restApiId': ctx.rest_api.id,
            'resourceId': ctx.resource.id,
            'httpMethod': endpoint.method,
        }

        existing = self.apigateway.fetch('get_method', **key)
        if isinstance(existing, NotFound):
            logger.debug(f'"{ctx.label}": method {endpoint.method} does not exist yet')
        else:
            ctx.previous_integration = existing.get('methodIntegration')
            self.apigateway.delete_method(**key)
            logger.info(f'"{ctx.label}": deleted existing method: {endpoint.method}')

        self.apigateway.put_method(
            authorizationType=endpoint.authorization_type,
            apiKeyRequired=endpoint.api_key_required,
            requestModels=endpoint.request_models,
            requestParameters=method_request_parameters(endpoint),
            **key
        )
        logger.info(f'"{ctx.label}": created method: {endpoint.method}')
        return ctx
