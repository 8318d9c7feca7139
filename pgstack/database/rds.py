"""RDS SubnetGroup + PostgreSQL Instance."""

from dataclasses import dataclass

import pulumi
import pulumi_aws

from pgstack.config import InstanceConfig
from pgstack.database.parameter_group import ParameterSet
from pgstack.iam.roles import create_monitoring_role
from pgstack.networking.network import NetworkContext
from pgstack.networking.security_groups import SecurityPolicy
from pgstack.secrets.credentials import CredentialRef

INSTANCE_NAME_TAG = "PostgresDatabase"


@dataclass(frozen=True)
class BackupSettings:
    retention_days: int
    window: str
    maintenance_window: str


def create_subnet_group(
    stack_name: str,
    network: NetworkContext,
    aws_provider: pulumi_aws.Provider,
) -> pulumi_aws.rds.SubnetGroup:
    description = f"{stack_name}subnet group"
    return pulumi_aws.rds.SubnetGroup(
        f"{stack_name}_db_subnets",
        # RDS only accepts lowercase subnet group names.
        name=description.lower(),
        description=description,
        subnet_ids=network.verified_subnet_ids,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )


def create_rds_instance(
    stack_name: str,
    db_name: str,
    instance_class: str,
    network: NetworkContext,
    security: SecurityPolicy,
    credentials: CredentialRef,
    parameters: ParameterSet,
    backup: BackupSettings,
    aws_provider: pulumi_aws.Provider,
    settings: InstanceConfig | None = None,
    rotation_enabled: bool = False,
) -> tuple[pulumi_aws.rds.SubnetGroup, pulumi_aws.rds.Instance]:
    """Create the subnet group and the instance from already-built upstream handles.

    The instance identifier and database name are both db_name. The engine
    and version come from parameters.engine so the two can never disagree.
    """
    if not db_name:
        raise ValueError("dbName is required")
    if not instance_class:
        raise ValueError("instanceType is required")
    settings = settings or InstanceConfig()
    retain = settings.removal_policy == "retain"

    subnet_group = create_subnet_group(stack_name, network, aws_provider)

    monitoring_role_arn = None
    if settings.monitoring_interval > 0:
        pulumi.log.info(
            f"Enhanced monitoring every {settings.monitoring_interval}s for {db_name}"
        )
        monitoring_role_arn = create_monitoring_role(stack_name, aws_provider).arn

    engine = parameters.engine
    rds_instance = pulumi_aws.rds.Instance(
        f"{stack_name}_db",
        identifier=db_name,
        db_name=db_name,
        engine=engine.engine,
        engine_version=engine.version,
        instance_class=instance_class,
        allocated_storage=settings.allocated_storage,
        username=credentials.username,
        password=credentials.password,
        db_subnet_group_name=subnet_group.name,
        vpc_security_group_ids=[security.id],
        parameter_group_name=parameters.name,
        backup_retention_period=backup.retention_days,
        backup_window=backup.window,
        maintenance_window=backup.maintenance_window,
        allow_major_version_upgrade=settings.allow_major_version_upgrade,
        auto_minor_version_upgrade=settings.auto_minor_version_upgrade,
        storage_encrypted=settings.storage_encrypted,
        monitoring_interval=settings.monitoring_interval,
        monitoring_role_arn=monitoring_role_arn,
        performance_insights_enabled=settings.enable_performance_insights,
        publicly_accessible=settings.publicly_accessible,
        skip_final_snapshot=not retain,
        final_snapshot_identifier=f"{db_name}-final" if retain else None,
        deletion_protection=retain,
        tags={"Name": INSTANCE_NAME_TAG},
        opts=pulumi.ResourceOptions(
            provider=aws_provider,
            protect=retain,
            ignore_changes=["password"] if rotation_enabled else None,
        ),
    )
    return (subnet_group, rds_instance)
