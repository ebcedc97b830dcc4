"""
Method responses and integration responses.

Both passes put one response per key of `Endpoint.responses`, in declaration
order. A failing key stops its pass; keys already put stay in place until the
next run replaces them.
"""

import logging
from typing import Optional

from .models import DEFAULT_RESPONSE_KEY, ResponseSpec, RunContext
from .retry import RetryingClient

logger = logging.getLogger(__name__)


def selection_pattern(key: str, response: ResponseSpec) -> Optional[str]:
    """Explicit pattern wins; otherwise the key, except for the catch-all default."""
    if response.selection_pattern:
        return response.selection_pattern
    if key == DEFAULT_RESPONSE_KEY:
        return None
    return key


class ResponseReconciler:

    def __init__(self, apigateway: RetryingClient):
        self.apigateway = apigateway

    def _key(self, ctx: RunContext, response: ResponseSpec):
        return {
            'restApiId': ctx.rest_api.id,
            'resourceId': ctx.resource.id,
            'httpMethod': ctx.endpoint.method,
            'statusCode': response.status_code,
        }

    def reconcile_method_responses(self, ctx: RunContext) -> RunContext:
        for key, response in ctx.endpoint.responses.items():
            self.apigateway.put_method_response(
                responseParameters={name: True for name in response.response_parameters},
                responseModels=dict(response.response_models),
                **self._key(ctx, response)
            )
            logger.info(
                f'"{ctx.label}": created method response {key} ({response.status_code})')
        return ctx

    def reconcile_integration_responses(self, ctx: RunContext) -> RunContext:
        for key, response in ctx.endpoint.responses.items():
            params = self._key(ctx, response)
            params['responseParameters'] = response.response_parameters
            params['responseTemplates'] = response.response_templates

            pattern = selection_pattern(key, response)
            if pattern is not None:
                params['selectionPattern'] = pattern

            self.apigateway.put_integration_response(**params)
            logger.info(
                f'"{ctx.label}": created integration response {key} '
                f'(pattern: {pattern!r})')
        return ctx
