from aws_cdk import aws_codebuild as codebuild, aws_iam as iam
from constructs import Construct

import common.constants as constants


class PrimoGatewayQaProject(codebuild.PipelineProject):
    """Runs the postman smoke test collection against a deployed stage."""

    def __init__(
        self, scope: Construct, construct_id: str, *, stage: str, role: iam.IRole
    ) -> None:
        param_store_path = constants.PARAM_STORE_PATH.format(
            service=constants.SERVICE_NAME, stage=stage
        )
        super().__init__(
            scope,
            construct_id,
            role=role,
            environment=codebuild.BuildEnvironment(
                build_image=constants.BUILD_IMAGE,
                environment_variables={
                    "API_URL": codebuild.BuildEnvironmentVariable(
                        value=f"{param_store_path}/{constants.PARAM_API_URL}",
                        type=codebuild.BuildEnvironmentVariableType.PARAMETER_STORE,
                    ),
                    "CI": codebuild.BuildEnvironmentVariable(
                        value="true",
                        type=codebuild.BuildEnvironmentVariableType.PLAINTEXT,
                    ),
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
                                "npm install -g newman",
                                'echo "Ensure that the Newman spec is readable"',
                                "chmod -R 755 ./tests/postman/*",
                            ],
                        },
                        "build": {
                            "commands": [
                                'echo "Beginning tests at `date`"',
                                f"newman run {constants.QA_COLLECTION} --env-var primoGatewayApiUrl=$API_URL",
                            ],
                        },
                    },
                }
            ),
        )
