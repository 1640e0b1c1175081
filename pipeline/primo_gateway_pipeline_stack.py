from aws_cdk import (
    Fn,
    RemovalPolicy,
    SecretValue,
    Stack,
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_s3 as s3,
    aws_sns as sns,
    aws_sns_subscriptions as subscriptions,
)
from constructs import Construct

import common.constants as constants
from common.app_config import PipelineConfig
from common.logger import build_logger
from pipeline.primo_gateway_build_project import PrimoGatewayBuildProject
from pipeline.primo_gateway_build_role import PrimoGatewayBuildRole
from pipeline.primo_gateway_qa_project import PrimoGatewayQaProject

logger = build_logger("primo-gateway-pipeline")


class PrimoGatewayPipelineStack(Stack):

    def __init__(
        self, scope: Construct, construct_id: str, config: PipelineConfig, **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config

        # S3 bucket for storing artifacts
        self.artifact_bucket = self._build_artifact_bucket()

        # IAM roles
        self.codepipeline_role = iam.Role(
            self,
            "CodePipelineRole",
            assumed_by=iam.ServicePrincipal("codepipeline.amazonaws.com"),
        )
        self.codebuild_role = PrimoGatewayBuildRole(
            self,
            "CodeBuildTrustRole",
            assumed_by=iam.ServicePrincipal("codebuild.amazonaws.com"),
            stages=constants.PIPELINE_STAGES,
            artifact_bucket=self.artifact_bucket,
        )

        self.pipeline = codepipeline.Pipeline(
            self,
            "CodePipeline",
            artifact_bucket=self.artifact_bucket,
            role=self.codepipeline_role,
        )
        self._build_pipeline_notifications()

        # Source code and blueprints
        self.app_source_artifact = codepipeline.Artifact("AppCode")
        self.infra_source_artifact = codepipeline.Artifact("InfraCode")
        app_source_action = self._build_source_action(
            action_name="SourceAppCode",
            repo=config.service_repository,
            branch=config.service_branch,
            output=self.app_source_artifact,
            trigger=codepipeline_actions.GitHubTrigger.WEBHOOK,
        )
        infra_source_action = self._build_source_action(
            action_name="SourceInfraCode",
            repo=config.blueprints_repository,
            branch=config.blueprints_branch,
            output=self.infra_source_artifact,
            trigger=codepipeline_actions.GitHubTrigger.NONE,
        )
        self.pipeline.add_stage(
            stage_name="Source", actions=[app_source_action, infra_source_action]
        )

        self.action_environment = {
            "VERSION": codebuild.BuildEnvironmentVariable(
                value=app_source_action.variables.commit_id,
                type=codebuild.BuildEnvironmentVariableType.PLAINTEXT,
            ),
        }

        # Deploy to test, run smoke tests, then wait for approval
        approval_topic = sns.Topic(
            self, "PipelineApprovalTopic", display_name="PipelineApprovalTopic"
        )
        if config.slack_notify_stack_name:
            self._subscribe_slack_approval(approval_topic)
        manual_approval_action = codepipeline_actions.ManualApprovalAction(
            action_name="ManualApprovalOfTestEnvironment",
            notification_topic=approval_topic,
            additional_information="Approve or Reject this change after testing",
            run_order=99,  # Approval should always be last
        )
        self.pipeline.add_stage(
            stage_name="DeployToTest",
            actions=[
                self._build_deploy_action("test", "PrimoGatewayTestBuildProject", run_order=1),
                self._build_smoke_tests_action("test", "QAProject"),
                manual_approval_action,
            ],
        )

        # Deploy to prod
        self.pipeline.add_stage(
            stage_name="DeployToProd",
            actions=[
                self._build_deploy_action("prod", "PrimoGatewayProdBuildProject"),
                self._build_smoke_tests_action("prod", "QAProjectProd"),
            ],
        )

    def _build_artifact_bucket(self) -> s3.Bucket:
        return s3.Bucket(
            self,
            "ArtifactBucket",
            removal_policy=RemovalPolicy.RETAIN,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
        )

    def _build_pipeline_notifications(self) -> sns.Topic:
        """Email the receivers whenever a pipeline execution changes state."""
        topic = sns.Topic(self, "PipelineNotificationsTopic")
        receivers = self.config.email_receiver_list
        for address in receivers:
            topic.add_subscription(subscriptions.EmailSubscription(address))
        self.pipeline.notify_on_execution_state_change("PipelineNotifications", topic)
        logger.info("Configured pipeline notifications", receivers=receivers)
        return topic

    def _subscribe_slack_approval(self, topic: sns.ITopic) -> None:
        """Relay approval requests to the Lambda exported by the slack notify stack."""
        notifier = _lambda.Function.from_function_arn(
            self,
            "SlackApprovalFunction",
            Fn.import_value(
                constants.SLACK_NOTIFY_EXPORT.format(
                    notify_stack=self.config.slack_notify_stack_name
                )
            ),
        )
        topic.add_subscription(subscriptions.LambdaSubscription(notifier))
        logger.info(
            "Subscribed slack approval relay",
            slack_notify_stack_name=self.config.slack_notify_stack_name,
        )

    def _build_source_action(
        self,
        action_name: str,
        repo: str,
        branch: str,
        output: codepipeline.Artifact,
        trigger: codepipeline_actions.GitHubTrigger,
    ) -> codepipeline_actions.GitHubSourceAction:
        return codepipeline_actions.GitHubSourceAction(
            action_name=action_name,
            owner=self.config.git_owner,
            repo=repo,
            branch=branch,
            oauth_token=SecretValue.secrets_manager(
                self.config.git_token_path, json_field="oauth"
            ),
            output=output,
            trigger=trigger,
        )

    def _build_deploy_action(
        self, stage: str, project_id: str, run_order: int | None = None
    ) -> codepipeline_actions.CodeBuildAction:
        project = PrimoGatewayBuildProject(
            self,
            project_id,
            stage=stage,
            role=self.codebuild_role,
            contact=self.config.contact,
            owner=self.config.owner,
            sentry_token_path=self.config.sentry_token_path,
            sentry_org=self.config.sentry_org,
            sentry_project=self.config.sentry_project,
            git_owner=self.config.git_owner,
            service_repository=self.config.service_repository,
            network_stack_name=self.config.network_stack_name,
        )
        return codepipeline_actions.CodeBuildAction(
            action_name="Build_and_Deploy",
            project=project,
            input=self.app_source_artifact,
            extra_inputs=[self.infra_source_artifact],
            run_order=run_order,
            environment_variables=self.action_environment,
        )

    def _build_smoke_tests_action(
        self, stage: str, project_id: str
    ) -> codepipeline_actions.CodeBuildAction:
        project = PrimoGatewayQaProject(
            self, project_id, stage=stage, role=self.codebuild_role
        )
        return codepipeline_actions.CodeBuildAction(
            action_name="SmokeTests",
            project=project,
            input=self.app_source_artifact,
            run_order=98,
        )
