from aws_cdk import aws_codebuild as codebuild, aws_iam as iam
from constructs import Construct

import common.constants as constants


def _plaintext(value: str) -> codebuild.BuildEnvironmentVariable:
    return codebuild.BuildEnvironmentVariable(
        value=value, type=codebuild.BuildEnvironmentVariableType.PLAINTEXT
    )


class PrimoGatewayBuildProject(codebuild.PipelineProject):
    """Builds and deploys the service stack for one stage."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        stage: str,
        role: iam.IRole,
        contact: str,
        owner: str,
        sentry_token_path: str,
        sentry_org: str,
        sentry_project: str,
        git_owner: str,
        service_repository: str,
        network_stack_name: str,
    ) -> None:
        service_stack_prefix = (
            scope.node.try_get_context("serviceStackName") or constants.SERVICE_NAME
        )
        super().__init__(
            scope,
            construct_id,
            role=role,
            environment=codebuild.BuildEnvironment(
                build_image=constants.BUILD_IMAGE,
                environment_variables={
                    "STACK_NAME": _plaintext(f"{service_stack_prefix}-{stage}"),
                    "CI": _plaintext("true"),
                    "STAGE": _plaintext(stage),
                    "CONTACT": _plaintext(contact),
                    "OWNER": _plaintext(owner),
                    "SENTRY_AUTH_TOKEN": codebuild.BuildEnvironmentVariable(
                        value=sentry_token_path,
                        type=codebuild.BuildEnvironmentVariableType.PARAMETER_STORE,
                    ),
                    "SENTRY_ORG": _plaintext(sentry_org),
                    "SENTRY_PROJECT": _plaintext(sentry_project),
                    "GITHUB_REPO": _plaintext(f"{git_owner}/{service_repository}"),
                    "NETWORK_STACK": _plaintext(network_stack_name),
                },
            ),
            build_spec=codebuild.BuildSpec.from_object(
                {
                    "version": "0.2",
                    "phases": {
                        "install": {
                            "runtime-versions": {
                                "nodejs": constants.NODEJS_RUNTIME_VERSION,
                            },
                            "commands": [
                                'echo "Ensure that the codebuild directory is executable"',
                                "chmod -R 755 ./scripts/codebuild/*",
                                'export BLUEPRINTS_DIR="$CODEBUILD_SRC_DIR_InfraCode"',
                                "./scripts/codebuild/install.sh",
                            ],
                        },
                        "pre_build": {"commands": ["./scripts/codebuild/pre_build.sh"]},
                        "build": {"commands": ["./scripts/codebuild/build.sh"]},
                        "post_build": {"commands": ["./scripts/codebuild/post_build.sh"]},
                    },
                }
            ),
        )
