import pytest
from aws_cdk.assertions import Match, Template
from stack_test_helpers import (
    TEST_STACK_NAME,
    LambdaTestCase,
    LogGroupTestCase,
    build_gateway_stack,
    expected_lambda_props,
    gateway_template,
    lambda_code_path,
)
from governance_checks import assert_api_tracing, assert_lambda_tracing

from primo_gateway.hierarchical_rest_api_resources import (
    MethodDefinition,
    ResourceDefinition,
)

# ----------------------------- Resource count smoke test ------------------------

RESOURCES = [
    ("AWS::ApiGateway::RestApi", 1),
    ("AWS::ApiGateway::Resource", 2),
    # GET on both resources plus the CORS preflight on root, query and favorites
    ("AWS::ApiGateway::Method", 5),
    ("AWS::ApiGateway::Authorizer", 1),
    ("AWS::ApiGateway::RequestValidator", 1),
    ("AWS::ApiGateway::Deployment", 1),
    ("AWS::ApiGateway::Stage", 1),
    ("AWS::Lambda::Function", 2),
    ("AWS::Logs::LogGroup", 2),
    ("AWS::SSM::Parameter", 1),
]


@pytest.mark.parametrize("resource_type,expected", RESOURCES)
def test_resource_count(gateway_template: Template, resource_type: str, expected: int):
    gateway_template.resource_count_is(resource_type, expected)


# -------------------------- Lambda configuration tests ------------------------

LAMBDA_TEST_CASES = (
    LambdaTestCase(
        id="query_function",
        function_name=f"{TEST_STACK_NAME}-query",
        handler="query.handler",
        description="Query primo for documents by id.",
    ),
    LambdaTestCase(
        id="favorites_function",
        function_name=f"{TEST_STACK_NAME}-favorites",
        handler="favorites.handler",
        description="Fetch eshelf favorites for a user from primo.",
    ),
)


@pytest.mark.parametrize("case", LAMBDA_TEST_CASES, ids=lambda test: test.id)
def test_lambda_function_configuration(gateway_template: Template, case: LambdaTestCase):
    gateway_template.has_resource_properties(
        "AWS::Lambda::Function",
        Match.object_like(expected_lambda_props(case)),
    )


def test_lambdas_are_traced(gateway_template: Template):
    assert_lambda_tracing(gateway_template)


LOG_GROUP_TEST_CASES = (
    LogGroupTestCase(
        id="query_log_group",
        log_group_name=f"/aws/lambda/{TEST_STACK_NAME}-query",
        retention_days=7,
    ),
    LogGroupTestCase(
        id="favorites_log_group",
        log_group_name=f"/aws/lambda/{TEST_STACK_NAME}-favorites",
        retention_days=7,
    ),
)


@pytest.mark.parametrize("case", LOG_GROUP_TEST_CASES, ids=lambda test: test.id)
def test_log_group_properties(gateway_template: Template, case: LogGroupTestCase):
    gateway_template.has_resource_properties(
        "AWS::Logs::LogGroup",
        {
            "LogGroupName": case.log_group_name,
            "RetentionInDays": case.retention_days,
        },
    )


# -------------------- API Gateway tests ----------------------------


def test_rest_api_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::RestApi",
        {"Name": TEST_STACK_NAME, "Description": "Primo Gateway API"},
    )


def test_rest_api_url_is_exported(gateway_template: Template):
    gateway_template.has_output(
        "*", {"Export": {"Name": f"{TEST_STACK_NAME}-api-url"}}
    )


def test_stage_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::Stage",
        {
            "StageName": "test",
            "TracingEnabled": True,
            "MethodSettings": Match.array_with(
                [
                    Match.object_like(
                        {
                            "HttpMethod": "*",
                            "ResourcePath": "/*",
                            "LoggingLevel": "ERROR",
                            "MetricsEnabled": True,
                        }
                    )
                ]
            ),
        },
    )
    assert_api_tracing(gateway_template)


def test_request_validator_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::RequestValidator", {"ValidateRequestParameters": True}
    )


def test_authorizer_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::Authorizer",
        {
            "Type": "TOKEN",
            "Name": "jwt",
            "IdentitySource": "method.request.header.Authorization",
            "AuthorizerResultTtlInSeconds": 300,
        },
    )


@pytest.mark.parametrize("path_part", ["query", "favorites"])
def test_api_resources(gateway_template: Template, path_part: str):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::Resource", {"PathPart": path_part}
    )


def test_query_method_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::Method",
        {
            "HttpMethod": "GET",
            "AuthorizationType": "NONE",
            "RequestParameters": {"method.request.querystring.docids": True},
            "Integration": Match.object_like(
                {
                    "Type": "AWS_PROXY",
                    "CacheKeyParameters": ["method.request.querystring.docids"],
                }
            ),
        },
    )


def test_favorites_method_properties(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::ApiGateway::Method",
        {
            "HttpMethod": "GET",
            "AuthorizationType": "CUSTOM",
            "AuthorizerId": {"Ref": Match.string_like_regexp(r".*JwtAuthorizer.*")},
            "RequestParameters": {
                "method.request.header.Authorization": True,
                "method.request.querystring.alephId": True,
                "method.request.querystring.institution": True,
            },
            "Integration": Match.object_like(
                {
                    "Type": "AWS_PROXY",
                    "CacheKeyParameters": [
                        "method.request.header.Authorization",
                        "method.request.querystring.alephId",
                        "method.request.querystring.institution",
                    ],
                }
            ),
        },
    )


def test_api_url_parameter(gateway_template: Template):
    gateway_template.has_resource_properties(
        "AWS::SSM::Parameter",
        {
            "Name": "/all/primo-gateway/test/api-url",
            "Type": "String",
            "Description": "Path to root of the API gateway.",
        },
    )


# -------------------- Resource tree tests ----------------------------


def test_resource_inventory_starts_with_root(lambda_code_path: str):
    stack = build_gateway_stack(lambda_code_path)

    resources = stack.api_resources.resources
    assert len(resources) == 3
    assert resources[0] is stack.api_resources.root_resource
    assert [resource.path for resource in resources[1:]] == ["/query", "/favorites"]


def test_resources_can_be_added_after_creation(lambda_code_path: str):
    stack = build_gateway_stack(lambda_code_path)

    stack.api_resources.add_resources(
        [ResourceDefinition(path_part="status/ping", methods=[MethodDefinition(http_method="GET")])]
    )

    template = Template.from_stack(stack)
    template.resource_count_is("AWS::ApiGateway::Resource", 4)
    assert [resource.path for resource in stack.api_resources.resources] == [
        "/",
        "/query",
        "/favorites",
        "/status",
        "/status/ping",
    ]


# -------------------- Stack naming tests ----------------------------

MIXED_CASE_STACK_NAME = "Primo-Gateway-Test"


def test_resource_names_keep_stack_name_case(lambda_code_path: str):
    template = Template.from_stack(
        build_gateway_stack(lambda_code_path, stack_id=MIXED_CASE_STACK_NAME)
    )

    template.has_resource_properties(
        "AWS::Lambda::Function", {"FunctionName": f"{MIXED_CASE_STACK_NAME}-query"}
    )
    template.has_resource_properties(
        "AWS::Logs::LogGroup",
        {"LogGroupName": f"/aws/lambda/{MIXED_CASE_STACK_NAME}-favorites"},
    )
    template.has_output(
        "*", {"Export": {"Name": f"{MIXED_CASE_STACK_NAME}-api-url"}}
    )
