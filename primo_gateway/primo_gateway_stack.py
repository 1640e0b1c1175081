from typing import Any, Mapping

from aws_cdk import (
    Duration,
    Fn,
    Stack,
    aws_apigateway as apigateway,
    aws_ec2 as ec2,
    aws_lambda as _lambda,
    aws_ssm as ssm,
)
from constructs import Construct

import common.constants as constants
from common.logger import build_logger
from common.stack_context import StackContext
from primo_gateway.hierarchical_rest_api_resources import (
    HierarchicalRestApiResources,
    MethodDefinition,
    ResourceDefinition,
)

logger = build_logger("primo-gateway-stack")


class PrimoGatewayStack(Stack):
    """API service that stands between other apps/services and Primo's APIs."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        stage: str,
        lambda_code_path: str,
        sentry_project: str,
        sentry_version: str,
        network_stack_name: str,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, stage=stage)
        self.network_stack_name = network_stack_name

        # Configure Lambda code and shared settings
        self.code = _lambda.Code.from_asset(lambda_code_path)
        self.lambda_environment = {
            "SENTRY_DSN": self._string_parameter(constants.PARAM_SENTRY_DSN),
            "SENTRY_ENVIRONMENT": stage,
            "SENTRY_RELEASE": f"{sentry_project}@{sentry_version}",
            "PRIMO_URL": self._string_parameter(constants.PARAM_PRIMO_URL),
        }

        # VPC needed to access certain APIs.
        self.lambda_vpc = self._import_lambda_vpc()
        self.security_group = ec2.SecurityGroup.from_security_group_id(
            self,
            "LambdaSecurityGroup",
            self._string_parameter(constants.PARAM_SECURITY_GROUP_ID),
        )

        # Lambdas
        self.query_lambda = self._build_function(
            action=constants.ACTION_QUERY,
            description="Query primo for documents by id.",
        )
        self.favorites_lambda = self._build_function(
            action=constants.ACTION_FAVORITES,
            description="Fetch eshelf favorites for a user from primo.",
        )

        # API Gateway
        self.api = self._build_rest_api()
        self.api.add_request_validator(
            "RequestValidator", validate_request_parameters=True
        )
        self.authorization_method_options = self._build_authorization_method_options()
        self.api_resources = HierarchicalRestApiResources(
            api=self.api, resources=self._resource_definitions()
        )

        # Output API url to ssm so we can import it in the QA project
        ssm.StringParameter(
            self,
            "ApiUrlParameter",
            parameter_name=self.context.build_parameter_name(constants.PARAM_API_URL),
            description="Path to root of the API gateway.",
            string_value=self.api.url,
        )

    def _string_parameter(self, name: str) -> str:
        return ssm.StringParameter.value_for_string_parameter(
            self, self.context.build_parameter_name(name)
        )

    def _network_export(self, output: str) -> str:
        return Fn.import_value(
            constants.NETWORK_EXPORT.format(
                network_stack=self.network_stack_name, output=output
            )
        )

    def _import_lambda_vpc(self) -> ec2.IVpc:
        return ec2.Vpc.from_vpc_attributes(
            self,
            "LambdaVpc",
            vpc_id=self._network_export(constants.NETWORK_VPC_ID),
            availability_zones=[Fn.select(0, Fn.get_azs()), Fn.select(1, Fn.get_azs())],
            public_subnet_ids=[
                self._network_export(output) for output in constants.NETWORK_PUBLIC_SUBNETS
            ],
            private_subnet_ids=[
                self._network_export(output) for output in constants.NETWORK_PRIVATE_SUBNETS
            ],
        )

    def _build_function(self, action: str, description: str) -> _lambda.Function:
        function_name = self.context.build_resource_name(action)
        log_group = self.context.build_log_group(function_name, action=action)
        return _lambda.Function(
            self,
            self.context.build_resource_id("Function", action=action),
            function_name=function_name,
            description=description,
            code=self.code,
            handler=f"{action}.handler",
            runtime=constants.LAMBDA_RUNTIME,
            memory_size=constants.LAMBDA_MEMORY_SIZE,
            timeout=Duration.seconds(constants.LAMBDA_TIMEOUT_SECONDS),
            environment=self.lambda_environment,
            vpc=self.lambda_vpc,
            vpc_subnets=ec2.SubnetSelection(subnets=self.lambda_vpc.private_subnets),
            security_groups=[self.security_group],
            tracing=_lambda.Tracing.ACTIVE,
            log_group=log_group,
        )

    def _cache_settings(self) -> tuple[bool, int]:
        """Read API caching settings from SSM at synth time.

        Lookups that are not resolved yet come back as placeholder values;
        those leave caching disabled with the default TTL.
        """
        cache_enabled = ssm.StringParameter.value_from_lookup(
            self, self.context.build_parameter_name(constants.PARAM_CACHE_ENABLED)
        )
        cache_ttl = ssm.StringParameter.value_from_lookup(
            self, self.context.build_parameter_name(constants.PARAM_CACHE_TTL)
        ).strip()
        ttl = int(cache_ttl) if cache_ttl.isdigit() else constants.DEFAULT_CACHE_TTL_SECONDS
        enabled = cache_enabled.strip().lower() == "true"
        logger.info("Resolved API cache settings", caching_enabled=enabled, cache_ttl=ttl)
        return enabled, ttl

    def _build_rest_api(self) -> apigateway.RestApi:
        caching_enabled, cache_ttl = self._cache_settings()
        return apigateway.RestApi(
            self,
            "ApiGateway",
            rest_api_name=self.context.stack_name,
            description="Primo Gateway API",
            endpoint_export_name=self.context.build_resource_name("api-url"),
            deploy_options=apigateway.StageOptions(
                stage_name=self.context.stage,
                metrics_enabled=True,
                logging_level=apigateway.MethodLoggingLevel.ERROR,
                tracing_enabled=True,
                cache_cluster_enabled=caching_enabled,
                caching_enabled=caching_enabled,
                cache_ttl=Duration.seconds(cache_ttl),
            ),
            default_cors_preflight_options=apigateway.CorsOptions(
                allow_origins=apigateway.Cors.ALL_ORIGINS,
                allow_credentials=False,
                status_code=200,
            ),
        )

    def _build_authorization_method_options(self) -> Mapping[str, Any]:
        authorizer = apigateway.TokenAuthorizer(
            self,
            "JwtAuthorizer",
            handler=_lambda.Function.from_function_arn(
                self,
                "AuthorizerFunction",
                self.context.build_authorizer_function_arn(),
            ),
            identity_source=apigateway.IdentitySource.header("Authorization"),
            authorizer_name=constants.AUTHORIZER_NAME,
            results_cache_ttl=Duration.minutes(constants.AUTHORIZER_CACHE_TTL_MINUTES),
        )
        return {
            "authorization_type": apigateway.AuthorizationType.CUSTOM,
            "authorizer": authorizer,
            "request_parameters": {constants.AUTHORIZATION_HEADER: True},
        }

    def _resource_definitions(self) -> list[ResourceDefinition]:
        auth_parameters = self.authorization_method_options["request_parameters"]
        favorites_parameters = [
            "method.request.querystring.alephId",
            "method.request.querystring.institution",
        ]
        return [
            ResourceDefinition(
                path_part="query",
                methods=[
                    MethodDefinition(
                        http_method="GET",
                        integration=apigateway.LambdaIntegration(
                            self.query_lambda,
                            cache_key_parameters=["method.request.querystring.docids"],
                        ),
                        options={
                            "request_parameters": {
                                "method.request.querystring.docids": True,
                            },
                        },
                    ),
                ],
            ),
            ResourceDefinition(
                path_part="favorites",
                methods=[
                    MethodDefinition(
                        http_method="GET",
                        integration=apigateway.LambdaIntegration(
                            self.favorites_lambda,
                            cache_key_parameters=[*auth_parameters, *favorites_parameters],
                        ),
                        options={
                            **self.authorization_method_options,
                            "request_parameters": {
                                **auth_parameters,
                                **{parameter: True for parameter in favorites_parameters},
                            },
                        },
                    ),
                ],
            ),
        ]
