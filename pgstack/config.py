"""Stack YAML configuration loading and validation."""

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

import jsonschema
import pulumi
import pulumi_aws
import yaml

from pgstack.spec.validator import validate_stack_spec

DEFAULT_STACK_NAME = "PostgresStack"
DEFAULT_USERNAME = "dbadmin"
DEFAULT_ENGINE_VERSION = "15.9"
DEFAULT_BACKUP_RETENTION_DAYS = 14
DEFAULT_BACKUP_WINDOW = "00:15-01:15"
DEFAULT_MAINTENANCE_WINDOW = "Sun:23:45-Mon:00:15"

REMOVAL_POLICIES = ("destroy", "retain")

# Address fields an ingress source may carry; exactly one must be set.
_SOURCE_FIELDS = ("cidr", "ipv6_cidr", "security_group_id", "prefix_list_id")


@dataclass(frozen=True)
class IngressSource:
    """One external peer allowed to reach the database port."""

    cidr: str | None = None
    ipv6_cidr: str | None = None
    security_group_id: str | None = None
    prefix_list_id: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        set_fields = [f for f in _SOURCE_FIELDS if getattr(self, f)]
        if len(set_fields) != 1:
            raise ValueError(
                "ingress source needs exactly one of cidr, ipv6Cidr, securityGroupId, "
                f"prefixListId (got {', '.join(set_fields) or 'none'})"
            )

    @property
    def kind(self) -> str:
        """Name of the populated address field."""
        return next(f for f in _SOURCE_FIELDS if getattr(self, f))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "IngressSource":
        return cls(
            cidr=raw.get("cidr"),
            ipv6_cidr=raw.get("ipv6Cidr"),
            security_group_id=raw.get("securityGroupId"),
            prefix_list_id=raw.get("prefixListId"),
            description=raw.get("description"),
        )


@dataclass
class InstanceConfig:
    """Instance settings that used to be fixed template choices."""

    allocated_storage: int = 20
    storage_encrypted: bool = True
    monitoring_interval: int = 60
    enable_performance_insights: bool = False
    publicly_accessible: bool = True
    allow_major_version_upgrade: bool = True
    auto_minor_version_upgrade: bool = True
    removal_policy: str = "destroy"

    def __post_init__(self) -> None:
        if self.removal_policy not in REMOVAL_POLICIES:
            raise ValueError(
                f"Unsupported removal policy: {self.removal_policy!r} "
                f"(expected one of {', '.join(REMOVAL_POLICIES)})"
            )


@dataclass
class RotationConfig:
    """Single-user password rotation schedule for the credentials secret."""

    enabled: bool = True
    automatically_after_days: int = 30


@dataclass
class PostgresConfig:
    """Parsed and validated stack configuration."""

    vpc_id: str
    subnet_ids: list[str]
    db_name: str
    instance_type: str
    stack_name: str = DEFAULT_STACK_NAME
    description: str = ""
    region: str = ""
    engine_version: str = DEFAULT_ENGINE_VERSION
    username: str = DEFAULT_USERNAME
    backup_retention_days: int = DEFAULT_BACKUP_RETENTION_DAYS
    backup_window: str = DEFAULT_BACKUP_WINDOW
    preferred_maintenance_window: str = DEFAULT_MAINTENANCE_WINDOW
    ingress_sources: list[IngressSource] = field(default_factory=list)
    allow_public_ingress: bool = False
    parameters: dict[str, str] = field(default_factory=dict)
    instance: InstanceConfig = field(default_factory=InstanceConfig)
    rotation: RotationConfig = field(default_factory=RotationConfig)

    @classmethod
    def from_dict(cls, document: dict[str, Any], region: str = "") -> "PostgresConfig":
        """Build a config from an already-validated stack document."""
        metadata = document.get("metadata") or {}
        spec = document["spec"]

        inst = spec.get("instance") or {}
        instance = InstanceConfig(
            allocated_storage=inst.get("allocatedStorage", 20),
            storage_encrypted=inst.get("storageEncrypted", True),
            monitoring_interval=inst.get("monitoringInterval", 60),
            enable_performance_insights=inst.get("enablePerformanceInsights", False),
            publicly_accessible=inst.get("publiclyAccessible", True),
            allow_major_version_upgrade=inst.get("allowMajorVersionUpgrade", True),
            auto_minor_version_upgrade=inst.get("autoMinorVersionUpgrade", True),
            removal_policy=inst.get("removalPolicy", "destroy"),
        )

        rot = spec.get("rotation") or {}
        rotation = RotationConfig(
            enabled=rot.get("enabled", True),
            automatically_after_days=rot.get("automaticallyAfterDays", 30),
        )

        return cls(
            vpc_id=spec["vpcId"],
            subnet_ids=list(spec["subnetIds"]),
            db_name=spec["dbName"],
            instance_type=spec["instanceType"],
            stack_name=metadata.get("name", DEFAULT_STACK_NAME),
            description=metadata.get("description", ""),
            region=region,
            engine_version=str(spec.get("engineVersion", DEFAULT_ENGINE_VERSION)),
            username=spec.get("PostgresUsername", DEFAULT_USERNAME),
            backup_retention_days=spec.get("backupRetentionDays", DEFAULT_BACKUP_RETENTION_DAYS),
            backup_window=spec.get("backupWindow", DEFAULT_BACKUP_WINDOW),
            preferred_maintenance_window=spec.get(
                "preferredMaintenanceWindow", DEFAULT_MAINTENANCE_WINDOW
            ),
            ingress_sources=[IngressSource.from_dict(s) for s in spec.get("ingressSources", [])],
            allow_public_ingress=spec.get("allowPublicIngress", False),
            parameters={k: str(v) for k, v in (spec.get("parameters") or {}).items()},
            instance=instance,
            rotation=rotation,
        )

    @classmethod
    def from_file(cls, path: str) -> "PostgresConfig":
        """Load and validate a stack YAML file."""
        if not Path(path).exists():
            raise SystemExit(f"stack file not found: {path}")

        with open(path, encoding="utf-8") as f:
            document: dict[str, Any] = yaml.safe_load(f)

        try:
            validate_stack_spec(document)
        except jsonschema.ValidationError as e:
            raise SystemExit(str(e)) from e

        aws_config = pulumi.Config("aws")
        region = aws_config.require("region")

        try:
            return cls.from_dict(document, region=region)
        except ValueError as e:
            raise SystemExit(str(e)) from e


def load_postgres_config() -> PostgresConfig:
    """Load the stack YAML from POSTGRES_STACK_YAML_PATH environment variable."""
    path = os.environ.get("POSTGRES_STACK_YAML_PATH")
    if not path:
        raise SystemExit("POSTGRES_STACK_YAML_PATH environment variable required")
    if not Path(path).exists():
        raise SystemExit("POSTGRES_STACK_YAML_PATH must point to a stack YAML file")
    return PostgresConfig.from_file(path)


def create_aws_provider(stack_name: str, region: str) -> pulumi_aws.Provider:
    """Create AWS provider with default resource tags."""
    return pulumi_aws.Provider(
        "aws-tagged",
        region=region,
        default_tags=pulumi_aws.ProviderDefaultTagsArgs(
            tags={
                "stack": stack_name,
                "managed-by": "postgres-stack",
            }
        ),
    )
