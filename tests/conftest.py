"""
Shared fixtures: real boto3 clients with botocore Stubbers attached, so every
test spells out the exact remote calls a build is expected to make.
"""

import json

import boto3
import pytest
from botocore.stub import Stubber

from endpoint_builder.builder import EndpointBuilder
from endpoint_builder.errors import APIGATEWAY, LAMBDA
from endpoint_builder.models import (
    ApiResource,
    BuildRequest,
    DeployedFunction,
    Endpoint,
    RestApi,
    RunContext,
)
from endpoint_builder.retry import RetryingClient
from endpoint_builder.state import AwsStateProvider

REGION = 'us-east-1'
STAGE = 'dev'
ACCOUNT = '123456789012'
ROLE_ARN = f'arn:aws:iam::{ACCOUNT}:role/lambda-role'
REST_API_NAME = 'users-api'
REST_API_ID = 'a1b2c3d4e5'
ROOT_ID = 'root000001'
FUNCTION_NAME = 'users-get'
FUNCTION_ARN = f'arn:aws:lambda:{REGION}:{ACCOUNT}:function:{FUNCTION_NAME}:{STAGE}'


def endpoint_description(**overrides):
    description = {
        'path': 'users/{id}',
        'method': 'get',
        'type': 'AWS',
        'authorizationType': 'NONE',
        'apiKeyRequired': False,
        'requestParameters': {
            'integration.request.path.id': 'method.request.path.id',
        },
        'requestTemplates': {
            'application/json': {
                'id': "$input.params('id')",
                'body': "$input.json('$')",
            },
        },
        'responses': {
            'default': {
                'statusCode': '200',
                'responseParameters': {},
                'responseModels': {},
                'responseTemplates': {'application/json': ''},
            },
            '400': {
                'statusCode': '400',
            },
        },
    }
    description.update(overrides)
    return description


def make_request(**overrides):
    values = dict(
        endpoint=endpoint_description(),
        stage=STAGE,
        region=REGION,
        iam_role_arn=ROLE_ARN,
        rest_api_name=REST_API_NAME,
        function_name=FUNCTION_NAME,
    )
    values.update(overrides)
    return BuildRequest(**values)


def make_context(path='/users/{id}', resources=None, **endpoint_overrides):
    """A context as it looks right before the resource tree step."""
    endpoint = Endpoint.from_dict(endpoint_description(path=path, **endpoint_overrides))
    request = make_request(endpoint=endpoint)
    if resources is None:
        resources = {'/': ApiResource(id=ROOT_ID, path='/')}
    return RunContext(
        request=request,
        endpoint=endpoint,
        account_number=ACCOUNT,
        rest_api=RestApi(id=REST_API_ID, name=REST_API_NAME),
        deployed_function=DeployedFunction(name=FUNCTION_NAME, arn=FUNCTION_ARN),
        resources=dict(resources),
    )


def resource_item(resource_id, path, parent_id=None):
    item = {'id': resource_id, 'path': path}
    if path != '/':
        item['parentId'] = parent_id
        item['pathPart'] = path.rsplit('/', 1)[1]
    return item


def policy_document(*sids, source_arn=None):
    statements = []
    for sid in sids:
        statement = {
            'Sid': sid,
            'Effect': 'Allow',
            'Principal': {'Service': 'apigateway.amazonaws.com'},
            'Action': 'lambda:InvokeFunction',
            'Resource': FUNCTION_ARN,
        }
        if source_arn:
            statement['Condition'] = {'ArnLike': {'AWS:SourceArn': source_arn}}
        statements.append(statement)
    return json.dumps({'Version': '2012-10-17', 'Id': 'default', 'Statement': statements})


def _client(service):
    return boto3.client(
        service,
        region_name=REGION,
        aws_access_key_id='testing',
        aws_secret_access_key='testing',
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def apigateway_stub():
    client = _client('apigateway')
    with Stubber(client) as stubber:
        yield client, stubber


@pytest.fixture
def lambda_stub():
    client = _client('lambda')
    with Stubber(client) as stubber:
        yield client, stubber


@pytest.fixture
def apigateway(apigateway_stub, sleeps):
    client, _ = apigateway_stub
    return RetryingClient(client, APIGATEWAY, max_attempts=3, base_delay=1.0,
                          max_delay=8.0, sleep=sleeps.append)


@pytest.fixture
def lambda_client(lambda_stub, sleeps):
    client, _ = lambda_stub
    return RetryingClient(client, LAMBDA, max_attempts=3, base_delay=1.0,
                          max_delay=8.0, sleep=sleeps.append)


@pytest.fixture
def apig(apigateway_stub):
    return apigateway_stub[1]


@pytest.fixture
def lam(lambda_stub):
    return lambda_stub[1]


@pytest.fixture
def builder(apigateway, lambda_client):
    state = AwsStateProvider(apigateway, lambda_client)
    return EndpointBuilder(state, apigateway, lambda_client)
