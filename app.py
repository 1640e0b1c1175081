#!/usr/bin/env python3
"""AWS CDK entrypoint for provisioning the Primo Gateway infrastructure.

The service stack is only created when the Lambda code can be located, either
through the ``lambdaCodePath`` context value or a sibling ``../primo-gateway``
checkout. The deployment pipeline stack is always created. Context values
passed on the command line override the defaults resolved here.
"""
import os

import aws_cdk as cdk
from aws_cdk import Environment, Tags

from common.app_config import AppConfig
from common.logger import build_logger
from pipeline.primo_gateway_pipeline_stack import PrimoGatewayPipelineStack
from primo_gateway.primo_gateway_stack import PrimoGatewayStack

logger = build_logger("primo-gateway-app")

app = cdk.App()
config = AppConfig.from_app(app)

Tags.of(app).add("Owner", config.owner)
Tags.of(app).add("Contact", config.contact)

env = Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=os.getenv("CDK_DEFAULT_REGION"),
)

if config.lambda_code_path:
    PrimoGatewayStack(
        app,
        config.service_stack_name,
        stack_name=config.service_stack_name,
        description="API service that stands between other apps/services and Primo's APIs.",
        stage=config.stage,
        lambda_code_path=config.lambda_code_path,
        sentry_project=config.sentry_project,
        sentry_version=config.sentry_version,
        network_stack_name=config.network_stack_name,
        env=env,
    )
else:
    logger.info("No lambda code path found, skipping the service stack")

pipeline_config = config.pipeline(app)
PrimoGatewayPipelineStack(
    app,
    pipeline_config.stack_name,
    stack_name=pipeline_config.stack_name,
    config=pipeline_config,
)

app.synth()
