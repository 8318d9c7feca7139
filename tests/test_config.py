"""Tests for stack config loading and validation."""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from pgstack.config import (
    DEFAULT_ENGINE_VERSION,
    IngressSource,
    InstanceConfig,
    PostgresConfig,
    create_aws_provider,
    load_postgres_config,
)

MINIMAL_YAML = """
apiVersion: postgres-stack/v1
kind: PostgresStack
metadata:
  name: PostgresStack
spec:
  vpcId: vpc-123
  subnetIds:
    - subnet-a
    - subnet-b
  dbName: sampledb
  instanceType: db.t4g.micro
"""


def _load(tmp_path: Path, content: str, region: str = "us-east-2") -> PostgresConfig:
    yaml_file = tmp_path / "stack.yaml"
    yaml_file.write_text(content)
    mock_config = MagicMock()
    mock_config.require.return_value = region
    with patch("pgstack.config.pulumi.Config", return_value=mock_config):
        return PostgresConfig.from_file(str(yaml_file))


def test_from_file_minimal_uses_defaults(tmp_path: Path) -> None:
    """Only required inputs given: username, engine, retention and windows fall back to defaults."""
    config = _load(tmp_path, MINIMAL_YAML)

    assert config.stack_name == "PostgresStack"
    assert config.region == "us-east-2"
    assert config.vpc_id == "vpc-123"
    assert config.subnet_ids == ["subnet-a", "subnet-b"]
    assert config.db_name == "sampledb"
    assert config.instance_type == "db.t4g.micro"
    assert config.username == "dbadmin"
    assert config.engine_version == DEFAULT_ENGINE_VERSION == "15.9"
    assert config.backup_retention_days == 14
    assert config.backup_window == "00:15-01:15"
    assert config.preferred_maintenance_window == "Sun:23:45-Mon:00:15"
    assert config.ingress_sources == []
    assert config.allow_public_ingress is False
    assert config.parameters == {}
    assert config.rotation.enabled is True
    assert config.rotation.automatically_after_days == 30


def test_from_file_template_defaults_for_instance(tmp_path: Path) -> None:
    """Instance settings default to the stock template choices."""
    config = _load(tmp_path, MINIMAL_YAML)

    assert config.instance == InstanceConfig()
    assert config.instance.allocated_storage == 20
    assert config.instance.storage_encrypted is True
    assert config.instance.monitoring_interval == 60
    assert config.instance.enable_performance_insights is False
    assert config.instance.publicly_accessible is True
    assert config.instance.allow_major_version_upgrade is True
    assert config.instance.auto_minor_version_upgrade is True
    assert config.instance.removal_policy == "destroy"


def test_from_file_full_fixture(tmp_path: Path) -> None:
    """Every optional section is parsed into the matching config field."""
    fixture = Path(__file__).resolve().parent.parent / "fixtures" / "full.yaml"
    config = _load(tmp_path, fixture.read_text(), region="eu-west-1")

    assert config.stack_name == "OrdersDb"
    assert config.description == "Orders database"
    assert config.engine_version == "16.4"
    assert config.username == "orders_admin"
    assert config.backup_retention_days == 21
    assert config.backup_window == "02:00-03:00"
    assert config.preferred_maintenance_window == "Sat:04:00-Sat:04:30"
    assert config.subnet_ids == ["subnet-0aaa1111bbbb2222c", "subnet_0ddd3333eeee4444f "]
    assert config.ingress_sources == [
        IngressSource(cidr="10.20.0.0/16", description="app VPC"),
        IngressSource(security_group_id="sg-0123456789abcdef0"),
        IngressSource(prefix_list_id="pl-0a1b2c3d"),
    ]
    assert config.parameters == {"log_min_duration_statement": "1000", "rds.force_ssl": "1"}
    assert config.instance.allocated_storage == 100
    assert config.instance.monitoring_interval == 30
    assert config.instance.enable_performance_insights is True
    assert config.instance.publicly_accessible is False
    assert config.instance.allow_major_version_upgrade is False
    assert config.instance.auto_minor_version_upgrade is True
    assert config.instance.removal_policy == "retain"
    assert config.rotation.automatically_after_days == 14


def test_from_file_missing_required_input_fails(tmp_path: Path) -> None:
    """A document without dbName is rejected before any config is built."""
    content = MINIMAL_YAML.replace("  dbName: sampledb\n", "")
    with pytest.raises(SystemExit) as exc_info:
        _load(tmp_path, content)
    message = str(exc_info.value)
    assert "validation failed" in message
    assert "dbName" in message


def test_from_file_not_found() -> None:
    """Missing file raises SystemExit."""
    with pytest.raises(SystemExit):
        PostgresConfig.from_file("/nonexistent/stack.yaml")


def test_load_postgres_config_missing_env_var(monkeypatch: pytest.MonkeyPatch) -> None:
    """POSTGRES_STACK_YAML_PATH unset raises SystemExit."""
    monkeypatch.delenv("POSTGRES_STACK_YAML_PATH", raising=False)
    with pytest.raises(SystemExit):
        load_postgres_config()


def test_load_postgres_config_file_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    """POSTGRES_STACK_YAML_PATH pointing nowhere raises SystemExit."""
    monkeypatch.setenv("POSTGRES_STACK_YAML_PATH", "/nonexistent/stack.yaml")
    with pytest.raises(SystemExit):
        load_postgres_config()


def test_load_postgres_config_reads_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """load_postgres_config loads the file named by the environment variable."""
    yaml_file = tmp_path / "stack.yaml"
    yaml_file.write_text(MINIMAL_YAML)
    monkeypatch.setenv("POSTGRES_STACK_YAML_PATH", str(yaml_file))
    mock_config = MagicMock()
    mock_config.require.return_value = "us-east-2"
    with patch("pgstack.config.pulumi.Config", return_value=mock_config):
        config = load_postgres_config()
    assert config.db_name == "sampledb"
    assert os.environ["POSTGRES_STACK_YAML_PATH"] == str(yaml_file)


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"description": "only a description"},
        {"cidr": "10.0.0.0/8", "security_group_id": "sg-1"},
    ],
)
def test_ingress_source_needs_exactly_one_address(kwargs: dict) -> None:
    """IngressSource rejects zero or several address fields."""
    with pytest.raises(ValueError, match="exactly one"):
        IngressSource(**kwargs)


def test_ingress_source_kind() -> None:
    """kind names the populated address field."""
    assert IngressSource(cidr="10.0.0.0/8").kind == "cidr"
    assert IngressSource(ipv6_cidr="::/0").kind == "ipv6_cidr"
    assert IngressSource(security_group_id="sg-1").kind == "security_group_id"
    assert IngressSource(prefix_list_id="pl-1").kind == "prefix_list_id"


def test_instance_config_rejects_unknown_removal_policy() -> None:
    """Only destroy and retain are accepted."""
    with pytest.raises(ValueError, match="removal policy"):
        InstanceConfig(removal_policy="snapshot")


def test_create_aws_provider() -> None:
    """Provider is created for the region with stack default tags."""
    with patch("pgstack.config.pulumi_aws.Provider") as mock_provider:
        create_aws_provider("PostgresStack", "us-east-2")
        mock_provider.assert_called_once()
        call_kw = mock_provider.call_args[1]
        assert call_kw["region"] == "us-east-2"
        assert call_kw["default_tags"].tags == {
            "stack": "PostgresStack",
            "managed-by": "postgres-stack",
        }
