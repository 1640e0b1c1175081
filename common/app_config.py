"""Deployment settings resolved from CDK context.

Any value here can be overridden on the command line, e.g.
``cdk deploy -c stage=prod -c lambdaCodePath=../primo-gateway/src``.
"""
import getpass
import os
import subprocess
from typing import Optional

from attrs import define, field
from aws_cdk import App

import common.constants as constants
from common.logger import build_logger

logger = build_logger("primo-gateway-app")

SERVICE_CHECKOUT = "../primo-gateway"
SERVICE_CHECKOUT_CODE_PATH = "../primo-gateway/src"

# PipelineConfig attribute -> required CDK context key
PIPELINE_CONTEXT_KEYS = {
    "git_owner": "gitOwner",
    "git_token_path": "gitTokenPath",
    "service_repository": "serviceRepository",
    "service_branch": "serviceBranch",
    "blueprints_repository": "blueprintsRepository",
    "blueprints_branch": "blueprintsBranch",
    "sentry_token_path": "sentryTokenPath",
    "sentry_org": "sentryOrg",
    "sentry_project": "sentryProject",
    "network_stack_name": "networkStack",
}

# PipelineConfig attribute -> optional CDK context key
OPTIONAL_PIPELINE_CONTEXT_KEYS = {
    "email_receivers": "emailReceivers",
    "slack_notify_stack_name": "slackNotifyStackName",
}


class MissingContextError(ValueError):
    """Raised when a required CDK context value was not provided."""


def _git_head(path: str) -> str:
    return subprocess.check_output(["git", "rev-parse", "HEAD"], cwd=path, text=True).strip()


@define(slots=True, frozen=True)
class PipelineConfig:
    stack_name: str
    git_owner: str
    git_token_path: str
    service_repository: str
    service_branch: str
    blueprints_repository: str
    blueprints_branch: str
    contact: str
    owner: str
    sentry_token_path: str
    sentry_org: str
    sentry_project: str
    network_stack_name: str
    # Comma separated; no email subscriptions when empty
    email_receivers: str = ""
    slack_notify_stack_name: Optional[str] = None

    @property
    def email_receiver_list(self) -> list[str]:
        return [
            address.strip() for address in self.email_receivers.split(",") if address.strip()
        ]

    @classmethod
    def from_app(cls, app: App, owner: str, contact: str) -> "PipelineConfig":
        values = {
            attribute: app.node.try_get_context(key)
            for attribute, key in PIPELINE_CONTEXT_KEYS.items()
        }
        missing = sorted(PIPELINE_CONTEXT_KEYS[name] for name, value in values.items() if not value)
        if missing:
            raise MissingContextError(
                f"Missing CDK context for the pipeline stack: {', '.join(missing)}"
            )
        optional = {
            attribute: app.node.try_get_context(key)
            for attribute, key in OPTIONAL_PIPELINE_CONTEXT_KEYS.items()
            if app.node.try_get_context(key)
        }
        return cls(
            stack_name=app.node.try_get_context("pipelineStackName")
            or f"{constants.SERVICE_NAME}-pipeline",
            contact=contact,
            owner=owner,
            **values,
            **optional,
        )


@define(slots=True, frozen=True)
class AppConfig:
    owner: str
    contact: str
    stage: str = field(default=constants.DEFAULT_ENV)
    sentry_project: Optional[str] = None
    sentry_version: Optional[str] = None
    network_stack_name: Optional[str] = None
    lambda_code_path: Optional[str] = None
    service_stack_name: Optional[str] = None

    @classmethod
    def from_app(cls, app: App) -> "AppConfig":
        owner = app.node.try_get_context("owner") or getpass.getuser()
        contact = app.node.try_get_context("contact") or f"{owner}@{constants.DEFAULT_CONTACT_DOMAIN}"
        stage = app.node.try_get_context("stage") or constants.DEFAULT_ENV

        lambda_code_path = app.node.try_get_context("lambdaCodePath")
        sentry_version = app.node.try_get_context("sentryVersion")
        if not lambda_code_path and os.path.exists(SERVICE_CHECKOUT):
            lambda_code_path = SERVICE_CHECKOUT_CODE_PATH
            sentry_version = _git_head(lambda_code_path)
            logger.info(
                "Using sibling service checkout",
                lambda_code_path=lambda_code_path,
                sentry_version=sentry_version,
            )

        return cls(
            owner=owner,
            contact=contact,
            stage=stage,
            sentry_project=app.node.try_get_context("sentryProject"),
            sentry_version=sentry_version,
            network_stack_name=app.node.try_get_context("networkStack"),
            lambda_code_path=lambda_code_path,
            service_stack_name=app.node.try_get_context("serviceStackName")
            or f"{constants.SERVICE_NAME}-{stage}",
        )

    def pipeline(self, app: App) -> PipelineConfig:
        return PipelineConfig.from_app(app, owner=self.owner, contact=self.contact)
