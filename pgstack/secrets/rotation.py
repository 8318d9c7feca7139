"""Single-user credential rotation for the PostgreSQL instance."""

from dataclasses import dataclass

import pulumi
import pulumi_aws

from pgstack.networking.network import NetworkContext
from pgstack.networking.security_groups import SecurityPolicy
from pgstack.secrets.credentials import CredentialRef

ROTATION_APPLICATION_ID = (
    "arn:aws:serverlessrepo:us-east-1:297356227824:applications/"
    "SecretsManagerRDSPostgreSQLRotationSingleUser"
)
ROTATION_LAMBDA_OUTPUT = "RotationLambdaARN"


@dataclass(frozen=True)
class RotationBinding:
    """Rotation function stack and the schedule attached to the credentials secret."""

    application: pulumi_aws.serverlessrepository.CloudFormationStack
    rotation: pulumi_aws.secretsmanager.SecretRotation


def add_rotation_single_user(
    stack_name: str,
    region: str,
    network: NetworkContext,
    security: SecurityPolicy,
    credentials: CredentialRef,
    secret_version: pulumi_aws.secretsmanager.SecretVersion,
    aws_provider: pulumi_aws.Provider,
    automatically_after_days: int = 30,
) -> RotationBinding:
    """Deploy the AWS single-user PostgreSQL rotation function and schedule it on the secret.

    The function runs in the database subnets with the database security
    group, so the "all from self" rule is what lets it reach the instance.
    """
    opts = pulumi.ResourceOptions(provider=aws_provider)
    application = pulumi_aws.serverlessrepository.CloudFormationStack(
        f"{stack_name}_rotation_app",
        name=f"{stack_name}-rotation",
        application_id=ROTATION_APPLICATION_ID,
        capabilities=["CAPABILITY_IAM", "CAPABILITY_RESOURCE_POLICY"],
        parameters={
            "endpoint": f"https://secretsmanager.{region}.amazonaws.com",
            "functionName": f"{stack_name}-secret-rotation",
            "vpcSubnetIds": network.verified_subnet_ids.apply(",".join),
            "vpcSecurityGroupIds": security.id,
        },
        opts=opts,
    )
    rotation = pulumi_aws.secretsmanager.SecretRotation(
        f"{stack_name}_secret_rotation",
        secret_id=credentials.secret.id,
        rotation_lambda_arn=application.outputs.apply(lambda o: o[ROTATION_LAMBDA_OUTPUT]),
        rotation_rules=pulumi_aws.secretsmanager.SecretRotationRotationRulesArgs(
            automatically_after_days=automatically_after_days,
        ),
        opts=pulumi.ResourceOptions(provider=aws_provider, depends_on=[secret_version]),
    )
    return RotationBinding(application=application, rotation=rotation)
