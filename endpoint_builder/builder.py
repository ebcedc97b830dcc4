"""
Endpoint Builder

Builds one endpoint on API Gateway in one stage/region pair:
1. Validates the populated endpoint and the stage variables
2. Resolves the REST API by name
3. Fetches the deployed Lambda function for the stage
4. Lists existing API resources
5. Creates any missing path resources
6. Replaces the method
7. Replaces the Lambda integration
8. Puts method responses, then integration responses
9. Grants API Gateway permission to invoke the function

Every step depends on the identifiers produced by the one before it, so the
steps always run in this order. Nothing is rolled back on failure; running the
build again converges whatever is left.
"""

import logging
from typing import Callable, List, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    APIGATEWAY,
    LAMBDA,
    VALIDATION,
    EndpointBuildError,
    PreconditionError,
    RemoteCallError,
)
from .integrations import IntegrationReconciler
from .methods import MethodReconciler
from .models import (
    BuildRequest,
    BuildResult,
    Endpoint,
    RunContext,
    account_number_from_role_arn,
)
from .permissions import PermissionManager
from .resources import ResourceTreeResolver
from .responses import ResponseReconciler
from .retry import RetryingClient, error_message
from .state import StateProvider, require_deployed_function, require_rest_api

logger = logging.getLogger(__name__)

Step = Callable[[RunContext], RunContext]


def endpoint_url(rest_api_id: str, region: str, stage: str, path: str) -> str:
    return f"https://{rest_api_id}.execute-api.{region}.amazonaws.com/{stage}{path}"


class EndpointBuilder:
    """Runs the build pipeline for one endpoint at a time; safe to share between threads."""

    def __init__(self, state: StateProvider, apigateway: RetryingClient,
                 lambda_client: RetryingClient):
        self.state = state
        self.resources = ResourceTreeResolver(apigateway)
        self.methods = MethodReconciler(apigateway)
        self.integrations = IntegrationReconciler(apigateway)
        self.responses = ResponseReconciler(apigateway)
        self.permissions = PermissionManager(lambda_client)

    def steps(self) -> List[Tuple[str, str, Step]]:
        return [
            ('validate', VALIDATION, self._validate),
            ('get_rest_api', APIGATEWAY, self._get_rest_api),
            ('fetch_deployed_function', LAMBDA, self._fetch_deployed_function),
            ('get_api_resources', APIGATEWAY, self._get_api_resources),
            ('create_endpoint_resources', APIGATEWAY, self.resources.resolve),
            ('create_endpoint_method', APIGATEWAY, self.methods.reconcile),
            ('create_endpoint_integration', APIGATEWAY, self.integrations.reconcile),
            ('create_method_responses', APIGATEWAY,
             self.responses.reconcile_method_responses),
            ('create_integration_responses', APIGATEWAY,
             self.responses.reconcile_integration_responses),
            ('manage_lambda_access_policy', LAMBDA, self.permissions.reconcile),
        ]

    def build(self, request: BuildRequest) -> BuildResult:
        ctx = RunContext(request=request)

        for step, component, run in self.steps():
            try:
                ctx = run(ctx)
            except PreconditionError as e:
                raise EndpointBuildError(
                    self._endpoint_label(ctx), step, VALIDATION, str(e)) from e
            except RemoteCallError as e:
                raise EndpointBuildError(
                    self._endpoint_label(ctx), step, e.component, e.message) from e
            except (ClientError, BotoCoreError) as e:
                raise EndpointBuildError(
                    self._endpoint_label(ctx), step, component, error_message(e)) from e
            except Exception as e:
                # Never let one endpoint's failure escape its own run.
                logger.exception(f'"{ctx.label}": unexpected error at {step}')
                raise EndpointBuildError(
                    self._endpoint_label(ctx), step, component,
                    f"{type(e).__name__}: {e}") from e

        url = endpoint_url(ctx.rest_api.id, ctx.region, ctx.stage, ctx.endpoint.path)
        logger.info(
            f'"{ctx.stage}" successfully built endpoint on API Gateway in the region '
            f'"{ctx.region}". Access it via {ctx.endpoint.method} @ {url}')

        return BuildResult(
            endpoint=ctx.endpoint.label,
            url=url,
            rest_api_id=ctx.rest_api.id,
            resource_id=ctx.resource.id,
            created_resource_ids=[r.id for r in ctx.created_resources],
            statement_id=ctx.statement_id,
        )

    @staticmethod
    def _endpoint_label(ctx: RunContext) -> str:
        if ctx.endpoint is not None:
            return ctx.endpoint.label
        return f"{ctx.request.method} {ctx.request.path}"

    def _validate(self, ctx: RunContext) -> RunContext:
        request = ctx.request
        ctx.account_number = account_number_from_role_arn(request.iam_role_arn)

        if not request.rest_api_name:
            raise PreconditionError('No API Gateway REST API name found')
        if not request.function_name:
            raise PreconditionError('No Lambda function name found for this endpoint')

        if isinstance(request.endpoint, Endpoint):
            ctx.endpoint = request.endpoint
        else:
            ctx.endpoint = Endpoint.from_dict(request.endpoint)
        return ctx

    def _get_rest_api(self, ctx: RunContext) -> RunContext:
        ctx.rest_api = require_rest_api(self.state, ctx.request.rest_api_name)
        logger.debug(f'"{ctx.label}": using REST API {ctx.rest_api.id}')
        return ctx

    def _fetch_deployed_function(self, ctx: RunContext) -> RunContext:
        ctx.deployed_function = require_deployed_function(
            self.state, ctx.request.function_name, ctx.stage)
        logger.info(
            f'"{ctx.label}": found the target lambda with function name: '
            f'{ctx.deployed_function.name}')
        return ctx

    def _get_api_resources(self, ctx: RunContext) -> RunContext:
        ctx.resources = self.resources.list_resources(ctx.rest_api.id)
        logger.info(
            f'"{ctx.label}": found {len(ctx.resources)} existing Resources on API Gateway')
        return ctx
