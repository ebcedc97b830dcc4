"""Lambda backend integration for the endpoint method."""

import json
import logging
import re
from typing import Any, Dict, Optional

from .models import RunContext
from .retry import RetryingClient

logger = logging.getLogger(__name__)

STAGE_ALIAS = '${stageVariables.functionAlias}'
LAMBDA_INVOCATION_PATH = '2015-03-31/functions'

# "$input.json('$.body')" -> $input.json('$.body')
INPUT_JSON_CALL = re.compile(r'''"\$input\.json\(['\\"]+([^\\)]+)['\\"]+\)"''')


def prepare_request_templates(request_templates: Dict[str, Any]) -> Dict[str, str]:
    """
    Serialize structured request templates to text.

    Velocity templates are a superset of JSON, so a template may be written as
    a mapping. After serialization every `$input.json(...)` call would be a
    quoted string; those quotes are removed so the call is evaluated.
    """
    prepared = {}
    for content_type, template in request_templates.items():
        if isinstance(template, (dict, list)):
            text = json.dumps(template, separators=(',', ':'))
            prepared[content_type] = INPUT_JSON_CALL.sub(r"$input.json('\1')", text)
        else:
            prepared[content_type] = template
    return prepared


def lambda_integration_uri(region: str, account_number: str, function_name: str,
                           alias: Optional[str] = None) -> str:
    function_arn = (f"arn:aws:lambda:{region}:{account_number}:function:"
                    f"{function_name}:{alias or STAGE_ALIAS}")
    return (f"arn:aws:apigateway:{region}:lambda:path/"
            f"{LAMBDA_INVOCATION_PATH}/{function_arn}/invocations")


class IntegrationReconciler:
    """Puts the integration, always replacing whatever was there before."""

    def __init__(self, apigateway: RetryingClient):
        self.apigateway = apigateway

    def reconcile(self, ctx: RunContext) -> RunContext:
        endpoint = ctx.endpoint
        params = {
            'restApiId': ctx.rest_api.id,
            'resourceId': ctx.resource.id,
            'httpMethod': endpoint.method,
            'type': endpoint.type,
            'integrationHttpMethod': 'POST',
            'uri': lambda_integration_uri(
                ctx.region, ctx.account_number,
                ctx.deployed_function.name, ctx.request.alias),
            'requestParameters': endpoint.request_parameters,
            'requestTemplates': prepare_request_templates(endpoint.request_templates),
            'cacheKeyParameters': endpoint.cache_key_parameters,
        }
        if endpoint.cache_namespace:
            params['cacheNamespace'] = endpoint.cache_namespace

        ctx.integration = self.apigateway.put_integration(**params)
        logger.info(
            f'"{ctx.label}": created integration with the type: '
            f'{ctx.integration.get("type", endpoint.type)}')
        return ctx
