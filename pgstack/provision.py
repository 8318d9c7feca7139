"""Compose the full PostgreSQL stack in one pass.

Build order: network -> security group -> credentials -> parameter group ->
instance -> secret attachment -> rotation -> outputs. Each step reads the
handles it depends on from the context with require, so a step run out of
order fails naming the missing handle.
"""

import pulumi
import pulumi_aws

from pgstack.config import PostgresConfig
from pgstack.context import CompositionContext
from pgstack.database.parameter_group import EngineSelection, create_parameter_group
from pgstack.database.rds import BackupSettings, create_rds_instance
from pgstack.networking.network import resolve_network
from pgstack.networking.security_groups import create_database_security_group
from pgstack.outputs import build_output_set
from pgstack.secrets.credentials import (
    SecretSpec,
    attach_secret_to_instance,
    build_secret_spec,
    create_database_credentials,
)
from pgstack.secrets.rotation import add_rotation_single_user


def check_required_inputs(config: PostgresConfig) -> None:
    """Raise ValueError naming every missing required input."""
    missing = [
        name
        for name, value in (
            ("vpcId", config.vpc_id),
            ("subnetIds", config.subnet_ids),
            ("dbName", config.db_name),
            ("instanceType", config.instance_type),
        )
        if not value
    ]
    if config.rotation.enabled and not config.region:
        missing.append("region (needed by rotation)")
    if missing:
        raise ValueError(f"missing required inputs: {', '.join(missing)}")


def _provision_network(ctx: CompositionContext) -> None:
    config = ctx.config
    ctx.set("network", resolve_network(config.vpc_id, config.subnet_ids, ctx.aws_provider))


def _provision_security(ctx: CompositionContext) -> None:
    config = ctx.config
    ctx.set(
        "security_policy",
        create_database_security_group(
            config.stack_name,
            ctx.require("network"),
            config.ingress_sources,
            ctx.aws_provider,
            allow_public_ingress=config.allow_public_ingress,
        ),
    )


def _provision_credentials(ctx: CompositionContext, secret_spec: SecretSpec) -> None:
    ctx.set(
        "credentials",
        create_database_credentials(ctx.config.stack_name, secret_spec, ctx.aws_provider),
    )


def _provision_parameters(ctx: CompositionContext, engine: EngineSelection) -> None:
    config = ctx.config
    ctx.set(
        "parameters",
        create_parameter_group(config.stack_name, engine, ctx.aws_provider, config.parameters),
    )


def _provision_instance(ctx: CompositionContext) -> None:
    config = ctx.config
    subnet_group, instance = create_rds_instance(
        stack_name=config.stack_name,
        db_name=config.db_name,
        instance_class=config.instance_type,
        network=ctx.require("network"),
        security=ctx.require("security_policy"),
        credentials=ctx.require("credentials"),
        parameters=ctx.require("parameters"),
        backup=BackupSettings(
            retention_days=config.backup_retention_days,
            window=config.backup_window,
            maintenance_window=config.preferred_maintenance_window,
        ),
        aws_provider=ctx.aws_provider,
        settings=config.instance,
        rotation_enabled=config.rotation.enabled,
    )
    ctx.set("subnet_group", subnet_group)
    ctx.set("instance", instance)


def _provision_secret(ctx: CompositionContext) -> None:
    ctx.set(
        "secret_version",
        attach_secret_to_instance(
            ctx.config.stack_name,
            ctx.require("credentials"),
            ctx.require("instance"),
            ctx.aws_provider,
            rotation_enabled=ctx.config.rotation.enabled,
        ),
    )


def _provision_rotation(ctx: CompositionContext) -> None:
    config = ctx.config
    credentials = ctx.require("credentials")
    if not config.rotation.enabled:
        pulumi.log.info(f"Rotation disabled for secret {credentials.spec.name}")
        return
    pulumi.log.info(
        f"Single-user rotation every {config.rotation.automatically_after_days} days "
        f"for secret {credentials.spec.name}"
    )
    ctx.set(
        "rotation",
        add_rotation_single_user(
            config.stack_name,
            config.region,
            ctx.require("network"),
            ctx.require("security_policy"),
            credentials,
            ctx.require("secret_version"),
            ctx.aws_provider,
            automatically_after_days=config.rotation.automatically_after_days,
        ),
    )


def _provision_outputs(ctx: CompositionContext) -> None:
    outputs = build_output_set(
        ctx.require("instance").address,
        ctx.require("credentials").username,
        ctx.config.db_name,
    )
    ctx.set("outputs", outputs)
    for name, value in outputs.as_exports().items():
        ctx.export(name, value)


def provision_postgres(
    config: PostgresConfig,
    aws_provider: pulumi_aws.Provider,
) -> CompositionContext:
    """Declare every resource of the stack and register its exports on the returned context.

    All inputs are checked before the first resource is declared, so a
    failing run never leaves a partial graph behind.
    """
    check_required_inputs(config)
    engine = EngineSelection.from_version(config.engine_version)
    secret_spec = build_secret_spec(config.db_name, config.username)

    ctx = CompositionContext(config=config, aws_provider=aws_provider)
    _provision_network(ctx)
    _provision_security(ctx)
    _provision_credentials(ctx, secret_spec)
    _provision_parameters(ctx, engine)
    _provision_instance(ctx)
    _provision_secret(ctx)
    _provision_rotation(ctx)
    _provision_outputs(ctx)
    return ctx
