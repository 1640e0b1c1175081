from typing import Sequence

from aws_cdk import Fn, aws_iam as iam, aws_s3 as s3
from constructs import Construct

import common.constants as constants


class PrimoGatewayBuildRole(iam.Role):
    """CodeBuild role allowed to deploy the service stacks of each stage."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        stages: Sequence[str],
        artifact_bucket: s3.IBucket,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        service_stack_prefix = (
            scope.node.try_get_context("serviceStackName") or constants.SERVICE_NAME
        )
        self.service_stacks = [f"{service_stack_prefix}-{stage}" for stage in stages]

        # Allow checking what policies are attached to this role
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[self.role_arn],
                actions=["iam:GetRolePolicy"],
            )
        )
        # Allow modifying IAM roles related to our application
        self.add_to_policy(
            iam.PolicyStatement(
                resources=self._service_stack_arns(
                    "arn:aws:iam::${{AWS::AccountId}}:role/{stack_name}*"
                ),
                actions=[
                    "iam:GetRole",
                    "iam:GetRolePolicy",
                    "iam:CreateRole",
                    "iam:DeleteRole",
                    "iam:DeleteRolePolicy",
                    "iam:AttachRolePolicy",
                    "iam:DetachRolePolicy",
                    "iam:PutRolePolicy",
                    "iam:PassRole",
                    "iam:TagRole",
                ],
            )
        )

        # Global resource permissions for managing cloudfront and logs
        self.add_to_policy(
            iam.PolicyStatement(
                resources=["*"],
                actions=[
                    "cloudformation:ListExports",
                    "cloudfront:GetDistribution",
                    "cloudfront:CreateDistribution",
                    "cloudfront:UpdateDistribution",
                    "cloudfront:TagResource",
                    "cloudfront:CreateInvalidation",
                    "logs:CreateLogGroup",
                ],
            )
        )

        # Allow logging for this stack
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    Fn.sub(
                        "arn:aws:logs:${AWS::Region}:${AWS::AccountId}:log-group:/aws/codebuild/${AWS::StackName}-*"
                    )
                ],
                actions=["logs:CreateLogStream"],
            )
        )
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    Fn.sub(
                        "arn:aws:logs:${AWS::Region}:${AWS::AccountId}:log-group:/aws/codebuild/${AWS::StackName}-*:log-stream:*"
                    )
                ],
                actions=["logs:PutLogEvents"],
            )
        )

        # Allow storing artifacts in S3 buckets
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    artifact_bucket.bucket_arn,
                    "arn:aws:s3:::cdktoolkit-stagingbucket-*",
                ],
                actions=[
                    "s3:ListBucket",
                    "s3:ListBucketVersions",
                    "s3:GetBucketLocation",
                    "s3:GetBucketPolicy",
                ],
            )
        )
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    artifact_bucket.arn_for_objects("*"),
                    "arn:aws:s3:::cdktoolkit-stagingbucket-*/*",
                ],
                actions=["s3:GetObject", "s3:PutObject"],
            )
        )

        # Allow creating and managing lambda with this stack name
        self.add_to_policy(
            iam.PolicyStatement(
                resources=self._service_stack_arns(
                    "arn:aws:lambda:${{AWS::Region}}:${{AWS::AccountId}}:function:{stack_name}*"
                ),
                actions=["lambda:*"],
            )
        )

        # Needed for setting up lambda VPC info
        self.add_to_policy(
            iam.PolicyStatement(
                resources=["*"],
                actions=[
                    "ec2:DescribeSecurityGroups",
                    "ec2:DescribeSecurityGroupReferences",
                    "ec2:DescribeSubnets",
                    "ec2:DescribeVpcs",
                    "ec2:DescribeVpcAttribute",
                ],
            )
        )

        # Allow fetching details about and updating the application stack
        self.add_to_policy(
            iam.PolicyStatement(
                resources=self._service_stack_arns(
                    "arn:aws:cloudformation:${{AWS::Region}}:${{AWS::AccountId}}:stack/{stack_name}/*"
                ),
                actions=[
                    "cloudformation:DescribeStacks",
                    "cloudformation:DescribeStackEvents",
                    "cloudformation:DescribeChangeSet",
                    "cloudformation:CreateChangeSet",
                    "cloudformation:ExecuteChangeSet",
                    "cloudformation:DeleteChangeSet",
                    "cloudformation:DeleteStack",
                    "cloudformation:GetTemplate",
                ],
            )
        )

        # Allow reading the CDKToolkit stack so the CDK CLI works from CodeBuild
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    Fn.sub(
                        "arn:aws:cloudformation:${AWS::Region}:${AWS::AccountId}:stack/CDKToolkit/*"
                    )
                ],
                actions=["cloudformation:DescribeStacks"],
            )
        )

        # Allow limited control of API Gateway so we can create a new api
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[Fn.sub("arn:aws:apigateway:${AWS::Region}::/account")],
                actions=["apigateway:PATCH"],
            )
        )
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    Fn.sub("arn:aws:apigateway:${AWS::Region}::/restapis"),
                    Fn.sub("arn:aws:apigateway:${AWS::Region}::/domainnames"),
                ],
                actions=["apigateway:POST"],
            )
        )
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[Fn.sub("arn:aws:apigateway:${AWS::Region}::/restapis/*")],
                actions=["apigateway:*"],
            )
        )

        # Allow fetching parameters from ssm
        self.add_to_policy(
            iam.PolicyStatement(
                resources=[
                    Fn.sub(
                        "arn:aws:ssm:${AWS::Region}:${AWS::AccountId}:parameter/all/"
                        + constants.SERVICE_NAME
                        + "/*"
                    ),
                    Fn.sub("arn:aws:ssm:${AWS::Region}:${AWS::AccountId}:*"),
                ],
                actions=["ssm:GetParametersByPath", "ssm:GetParameter", "ssm:GetParameters"],
            )
        )

    def _service_stack_arns(self, arn_template: str) -> list[str]:
        return [
            Fn.sub(arn_template.format(stack_name=stack_name))
            for stack_name in self.service_stacks
        ]
