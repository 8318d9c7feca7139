"""IAM role for RDS enhanced monitoring."""

import json

import pulumi
import pulumi_aws

ENHANCED_MONITORING_POLICY_ARN = (
    "arn:aws:iam::aws:policy/service-role/AmazonRDSEnhancedMonitoringRole"
)


def create_monitoring_role(
    stack_name: str,
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.iam.Role:
    """Create the role RDS assumes to publish enhanced monitoring metrics."""
    assume_policy = json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "sts:AssumeRole",
                    "Effect": "Allow",
                    "Principal": {"Service": "monitoring.rds.amazonaws.com"},
                }
            ],
        }
    )

    role = pulumi_aws.iam.Role(
        f"{stack_name}_monitoring_role",
        name=f"{stack_name}-rds-monitoring",
        assume_role_policy=assume_policy,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    pulumi_aws.iam.RolePolicyAttachment(
        f"{stack_name}_monitoring_policy",
        role=role.name,
        policy_arn=ENHANCED_MONITORING_POLICY_ARN,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return role
