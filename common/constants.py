from aws_cdk import aws_codebuild as codebuild, aws_lambda as _lambda, aws_logs as logs

SERVICE_NAME = "primo-gateway"
DEFAULT_ENV = "dev"
PIPELINE_STAGES = ("test", "prod")
DEFAULT_CONTACT_DOMAIN = "nd.edu"

# SSM parameter store layout: /all/<service>/<stage>/<name>
PARAM_STORE_PATH = "/all/{service}/{stage}"
PARAM_SENTRY_DSN = "sentry_dsn"
PARAM_PRIMO_URL = "primo_url"
PARAM_SECURITY_GROUP_ID = "securitygroupid"
PARAM_CACHE_ENABLED = "cache_enabled"
PARAM_CACHE_TTL = "cache_ttl"
PARAM_API_URL = "api-url"

# Lambda handlers live in the primo-gateway service repository
LAMBDA_RUNTIME = _lambda.Runtime.NODEJS_20_X
LAMBDA_MEMORY_SIZE = 1024
LAMBDA_TIMEOUT_SECONDS = 30
LAMBDA_LOG_RETENTION = logs.RetentionDays.ONE_WEEK
ACTION_QUERY = "query"
ACTION_FAVORITES = "favorites"

# Network stack export names
NETWORK_EXPORT = "{network_stack}:{output}"
NETWORK_VPC_ID = "VPCID"
NETWORK_PUBLIC_SUBNETS = ("PublicSubnet1ID", "PublicSubnet2ID")
NETWORK_PRIVATE_SUBNETS = ("PrivateSubnet1ID", "PrivateSubnet2ID")

# Lambda exported by the slack notify stack that relays approval requests
SLACK_NOTIFY_EXPORT = "{notify_stack}:LambdaArn"

# API Gateway
DEFAULT_CACHE_TTL_SECONDS = 300
AUTHORIZER_NAME = "jwt"
AUTHORIZER_FUNCTION_NAME = "lambda-auth-{stage}"
AUTHORIZER_CACHE_TTL_MINUTES = 5
AUTHORIZATION_HEADER = "method.request.header.Authorization"

# CodeBuild
BUILD_IMAGE = codebuild.LinuxBuildImage.STANDARD_7_0
NODEJS_RUNTIME_VERSION = "20"
QA_COLLECTION = "./tests/postman/qa_collection.json"
