from enum import Enum

from stack_test_helpers import find_resources_by_type, get_single_resource_id


class GovernedResource(str, Enum):
    """CloudFormation types that the primo gateway security standards cover."""

    ARTIFACT_BUCKET = "AWS::S3::Bucket"
    FUNCTION = "AWS::Lambda::Function"
    API_STAGE = "AWS::ApiGateway::Stage"


def assert_s3_compliance(template):
    resources = find_resources_by_type(template, GovernedResource.ARTIFACT_BUCKET.value)
    logical_id = get_single_resource_id(resources, GovernedResource.ARTIFACT_BUCKET.value)
    props = resources[logical_id]["Properties"]
    pab = props["PublicAccessBlockConfiguration"]
    assert all(value is True for value in pab.values()), (
        f"Pipeline artifact bucket {logical_id} must block all public access"
    )
    encryption = props["BucketEncryption"]["ServerSideEncryptionConfiguration"]
    assert encryption[0]["ServerSideEncryptionByDefault"]["SSEAlgorithm"] == "AES256", (
        f"Pipeline artifact bucket {logical_id} must be encrypted at rest"
    )


def assert_lambda_tracing(template):
    functions = find_resources_by_type(template, GovernedResource.FUNCTION.value)
    assert functions, "Gateway stack must define its query and favorites functions"
    for logical_id, function in functions.items():
        tracing = function["Properties"].get("TracingConfig", {})
        assert tracing.get("Mode") == "Active", (
            f"Lambda {logical_id} must have active X-Ray tracing"
        )


def assert_api_tracing(template):
    stages = find_resources_by_type(template, GovernedResource.API_STAGE.value)
    logical_id = get_single_resource_id(stages, GovernedResource.API_STAGE.value)
    assert stages[logical_id]["Properties"].get("TracingEnabled") is True, (
        f"API Gateway stage {logical_id} must enable X-Ray tracing"
    )
