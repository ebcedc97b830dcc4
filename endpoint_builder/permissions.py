"""Lambda access policy statement granting API Gateway invoke rights."""

import json
import logging
import re

from botocore.exceptions import BotoCoreError, ClientError

from .errors import NotFound
from .models import RunContext
from .retry import RetryingClient, error_code, error_message

logger = logging.getLogger(__name__)

STATEMENT_PREFIX = 's_apig'
UNSAFE_STATEMENT_CHARS = re.compile(r'[/{}]')
INVOKE_ACTION = 'lambda:InvokeFunction'
APIGATEWAY_PRINCIPAL = 'apigateway.amazonaws.com'
STATEMENT_CONFLICT = 'ResourceConflictException'


def statement_id(path: str, method: str) -> str:
    """'/users/{id}', 'GET' -> 's_apig_users__id__GET'."""
    return UNSAFE_STATEMENT_CHARS.sub('_', f"{STATEMENT_PREFIX}{path}_{method}")


def source_arn(region: str, account_number: str, rest_api_id: str,
               method: str, path: str) -> str:
    return f"arn:aws:execute-api:{region}:{account_number}:{rest_api_id}/*/{method}{path}"


class PermissionManager:
    """Keeps exactly one invoke statement per endpoint on the function policy."""

    def __init__(self, lambda_client: RetryingClient):
        self.lambda_client = lambda_client

    def reconcile(self, ctx: RunContext) -> RunContext:
        endpoint = ctx.endpoint
        function = ctx.deployed_function
        ctx.statement_id = statement_id(endpoint.path, endpoint.method)

        self._load_policy(ctx)
        if ctx.statement_id in function.statement_ids():
            self._remove_statement(ctx)

        arn = source_arn(ctx.region, ctx.account_number,
                         ctx.rest_api.id, endpoint.method, endpoint.path)
        try:
            self.lambda_client.add_permission(
                FunctionName=function.arn,
                StatementId=ctx.statement_id,
                Action=INVOKE_ACTION,
                Principal=APIGATEWAY_PRINCIPAL,
                SourceArn=arn
            )
        except ClientError as e:
            # A retried add whose first attempt landed reports a conflict.
            if error_code(e) != STATEMENT_CONFLICT or not self._statement_in_place(ctx, arn):
                raise
            logger.info(
                f'"{ctx.label}": permission statement {ctx.statement_id} already in place')
            return ctx
        logger.info(f'"{ctx.label}": added permission to Lambda')
        return ctx

    def _statement_in_place(self, ctx: RunContext, arn: str) -> bool:
        self._load_policy(ctx)
        statement = ctx.deployed_function.statement(ctx.statement_id)
        if statement is None:
            return False
        condition = statement.get('Condition') or {}
        return (condition.get('ArnLike') or {}).get('AWS:SourceArn') == arn

    def _load_policy(self, ctx: RunContext) -> None:
        function = ctx.deployed_function
        function.policy = None
        try:
            response = self.lambda_client.fetch('get_policy', FunctionName=function.arn)
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                f'"{ctx.label}": could not read access policy of {function.name}: '
                f'{error_message(e)}')
            return
        if isinstance(response, NotFound):
            return
        try:
            policy = json.loads(response.get('Policy') or '{}')
        except ValueError:
            logger.warning(f'"{ctx.label}": unreadable access policy on {function.name}')
            return
        if isinstance(policy, dict):
            function.policy = policy

    def _remove_statement(self, ctx: RunContext) -> None:
        try:
            self.lambda_client.remove_permission(
                FunctionName=ctx.deployed_function.arn,
                StatementId=ctx.statement_id
            )
            logger.info(
                f'"{ctx.label}": removed existing lambda access policy statement')
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                f'"{ctx.label}": could not remove statement {ctx.statement_id}: '
                f'{error_message(e)}')
