from attrs import define, field
from aws_cdk import RemovalPolicy, Stack, aws_logs as logs
from typing import Optional

import common.constants as constants


@define(slots=True, frozen=True)
class StackContext:
    scope: Stack
    stage: str = field(
        default=constants.DEFAULT_ENV,
        metadata={"description": "Deployment stage (dev, test, prod)"},
    )
    service: str = field(default=constants.SERVICE_NAME, init=False)

    @property
    def aws_account_id(self) -> str:
        return Stack.of(self.scope).account

    @property
    def aws_region(self) -> str:
        return Stack.of(self.scope).region

    @property
    def stack_name(self) -> str:
        return Stack.of(self.scope).stack_name

    # ---------- parameters ----------
    @property
    def param_store_path(self) -> str:
        return constants.PARAM_STORE_PATH.format(service=self.service, stage=self.stage)

    def build_parameter_name(self, name: str) -> str:
        """Examples:
        - sentry_dsn: /all/primo-gateway/dev/sentry_dsn
        """
        return f"{self.param_store_path}/{name}"

    def build_authorizer_function_arn(self) -> str:
        region = self.aws_region
        if not region:
            raise ValueError(
                "AWS region is not set, unable to resolve authorizer function ARN"
            )
        function_name = constants.AUTHORIZER_FUNCTION_NAME.format(stage=self.stage)
        return f"arn:aws:lambda:{region}:{self.aws_account_id}:function:{function_name}"

    # ---------- naming ----------
    def build_resource_name(self, resource: str) -> str:
        """Build resource name scoped to the stack.

        Examples:
            - query: primo-gateway-dev-query
        """
        return f"{self.stack_name}-{resource}"

    def build_resource_id(self, resource_type: str, action: Optional[str] = None) -> str:
        """Build resource ID with optional action.

        Examples:
            - Without action: Function
            - With action: QueryFunction
        """
        if action:
            return f"{action.capitalize()}{resource_type}"
        return resource_type

    def build_log_group(
        self,
        function_name: str,
        action: Optional[str] = None,
        retention: logs.RetentionDays = constants.LAMBDA_LOG_RETENTION,
    ) -> logs.LogGroup:
        return logs.LogGroup(
            self.scope,
            self.build_resource_id("LogGroup", action=action),
            log_group_name=f"/aws/lambda/{function_name}",
            removal_policy=RemovalPolicy.DESTROY,
            retention=retention,
        )
