import pytest
from botocore.exceptions import ClientError

from endpoint_builder.permissions import PermissionManager, source_arn, statement_id

from conftest import ACCOUNT, FUNCTION_ARN, REGION, REST_API_ID, make_context, policy_document

SID = 's_apig_users__id__GET'
ADD_PERMISSION = {
    'FunctionName': FUNCTION_ARN,
    'StatementId': SID,
    'Action': 'lambda:InvokeFunction',
    'Principal': 'apigateway.amazonaws.com',
    'SourceArn': f'arn:aws:execute-api:{REGION}:{ACCOUNT}:{REST_API_ID}/*/GET/users/{{id}}',
}


def test_statement_id_replaces_separators_and_braces():
    assert statement_id('/users/{id}', 'GET') == SID


def test_statement_id_is_deterministic_and_distinct():
    pairs = [('/users', 'GET'), ('/users', 'POST'), ('/users/{id}', 'GET'),
             ('/users/id', 'GET'), ('/usersid', 'GET'), ('/users/{id}/orders', 'GET')]
    ids = [statement_id(path, method) for path, method in pairs]
    assert ids == [statement_id(path, method) for path, method in pairs]
    assert len(set(ids)) == len(ids)


def test_source_arn_is_scoped_to_method_and_path():
    assert source_arn(REGION, ACCOUNT, REST_API_ID, 'GET', '/users/{id}') == \
        ADD_PERMISSION['SourceArn']


def test_no_policy_means_add_only(lambda_client, lam):
    lam.add_client_error('get_policy', service_error_code='ResourceNotFoundException',
                         service_message='The resource you requested does not exist.',
                         http_status_code=404, expected_params={'FunctionName': FUNCTION_ARN})
    lam.add_response('add_permission', {'Statement': '{}'}, ADD_PERMISSION)
    ctx = make_context()

    PermissionManager(lambda_client).reconcile(ctx)

    lam.assert_no_pending_responses()
    assert ctx.statement_id == SID


def test_existing_statement_is_removed_before_adding(lambda_client, lam):
    lam.add_response('get_policy', {'Policy': policy_document('other', SID)},
                     {'FunctionName': FUNCTION_ARN})
    lam.add_response('remove_permission', {},
                     {'FunctionName': FUNCTION_ARN, 'StatementId': SID})
    lam.add_response('add_permission', {'Statement': '{}'}, ADD_PERMISSION)

    PermissionManager(lambda_client).reconcile(make_context())

    lam.assert_no_pending_responses()


def test_unrelated_statements_are_left_alone(lambda_client, lam):
    lam.add_response('get_policy', {'Policy': policy_document('s_apig_users_POST')})
    lam.add_response('add_permission', {'Statement': '{}'}, ADD_PERMISSION)

    PermissionManager(lambda_client).reconcile(make_context())

    lam.assert_no_pending_responses()


def test_failed_removal_is_swallowed(lambda_client, lam):
    lam.add_response('get_policy', {'Policy': policy_document(SID)})
    lam.add_client_error('remove_permission', service_error_code='ResourceNotFoundException',
                         service_message='Statement not found', http_status_code=404)
    lam.add_response('add_permission', {'Statement': '{}'}, ADD_PERMISSION)

    PermissionManager(lambda_client).reconcile(make_context())

    lam.assert_no_pending_responses()


def test_unreadable_policy_counts_as_no_policy(lambda_client, lam):
    lam.add_response('get_policy', {'Policy': 'not json'})
    lam.add_response('add_permission', {'Statement': '{}'}, ADD_PERMISSION)
    ctx = make_context()

    PermissionManager(lambda_client).reconcile(ctx)

    lam.assert_no_pending_responses()
    assert ctx.deployed_function.policy is None


def test_failed_add_is_fatal(lambda_client, lam):
    lam.add_client_error('get_policy', service_error_code='ResourceNotFoundException',
                         http_status_code=404)
    lam.add_client_error('add_permission', service_error_code='AccessDeniedException',
                         service_message='not authorized to perform lambda:AddPermission',
                         http_status_code=403)

    with pytest.raises(ClientError) as excinfo:
        PermissionManager(lambda_client).reconcile(make_context())

    assert excinfo.value.response['Error']['Code'] == 'AccessDeniedException'


def test_conflict_with_the_same_statement_in_place_is_success(lambda_client, lam):
    lam.add_client_error('get_policy', service_error_code='ResourceNotFoundException',
                         http_status_code=404)
    lam.add_client_error('add_permission', service_error_code='ResourceConflictException',
                         service_message='The statement id provided already exists.',
                         http_status_code=409, expected_params=ADD_PERMISSION)
    lam.add_response('get_policy', {
        'Policy': policy_document(SID, source_arn=ADD_PERMISSION['SourceArn']),
    }, {'FunctionName': FUNCTION_ARN})
    ctx = make_context()

    PermissionManager(lambda_client).reconcile(ctx)

    lam.assert_no_pending_responses()
    assert ctx.statement_id == SID


def test_conflict_with_a_different_source_arn_is_fatal(lambda_client, lam):
    lam.add_client_error('get_policy', service_error_code='ResourceNotFoundException',
                         http_status_code=404)
    lam.add_client_error('add_permission', service_error_code='ResourceConflictException',
                         service_message='The statement id provided already exists.',
                         http_status_code=409)
    lam.add_response('get_policy', {
        'Policy': policy_document(
            SID, source_arn=f'arn:aws:execute-api:{REGION}:{ACCOUNT}:oldapi0001/*/GET/users/{{id}}'),
    })

    with pytest.raises(ClientError) as excinfo:
        PermissionManager(lambda_client).reconcile(make_context())

    assert excinfo.value.response['Error']['Code'] == 'ResourceConflictException'
    lam.assert_no_pending_responses()


def test_retried_add_that_landed_first_time_is_success(lambda_client, lam, sleeps):
    lam.add_client_error('get_policy', service_error_code='ResourceNotFoundException',
                         http_status_code=404)
    lam.add_client_error('add_permission', service_error_code='TooManyRequestsException',
                         http_status_code=429)
    lam.add_client_error('add_permission', service_error_code='ResourceConflictException',
                         http_status_code=409)
    lam.add_response('get_policy', {
        'Policy': policy_document(SID, source_arn=ADD_PERMISSION['SourceArn']),
    })

    PermissionManager(lambda_client).reconcile(make_context())

    lam.assert_no_pending_responses()
    assert sleeps == [1.0]
