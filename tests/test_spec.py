"""Tests for stack spec schema validation."""

from pathlib import Path

import jsonschema
import pytest
import yaml

from pgstack.spec.validator import load_schema, validate_stack_spec


def _doc(**spec_overrides: object) -> dict:
    spec = {
        "vpcId": "vpc-123",
        "subnetIds": ["subnet-a"],
        "dbName": "sampledb",
        "instanceType": "db.t4g.micro",
    }
    spec.update(spec_overrides)
    return {
        "apiVersion": "postgres-stack/v1",
        "kind": "PostgresStack",
        "metadata": {"name": "PostgresStack"},
        "spec": spec,
    }


def test_all_fixtures_validate() -> None:
    """All fixtures must pass schema validation (keeps fixtures in sync with schema)."""
    fixture_dir = Path(__file__).resolve().parent.parent / "fixtures"
    paths = sorted(fixture_dir.glob("*.yaml"))
    assert paths
    for path in paths:
        with open(path, encoding="utf-8") as f:
            validate_stack_spec(yaml.safe_load(f))


def test_minimal_document_validates() -> None:
    """The four required inputs are enough."""
    validate_stack_spec(_doc())


def test_missing_api_version() -> None:
    """Missing apiVersion raises ValidationError."""
    data = _doc()
    del data["apiVersion"]
    with pytest.raises(jsonschema.ValidationError, match="apiVersion"):
        validate_stack_spec(data)


def test_unsupported_api_version() -> None:
    """Unknown apiVersion raises ValueError."""
    data = _doc()
    data["apiVersion"] = "postgres-stack/v99"
    with pytest.raises(ValueError, match="Unsupported apiVersion"):
        validate_stack_spec(data)


def test_load_schema_unknown_version() -> None:
    """load_schema rejects versions it has no file for."""
    with pytest.raises(ValueError):
        load_schema("something/v1")


def test_all_missing_required_inputs_are_reported() -> None:
    """Every missing required input shows up in one error."""
    data = _doc()
    data["spec"] = {}
    with pytest.raises(jsonschema.ValidationError) as exc_info:
        validate_stack_spec(data)
    message = str(exc_info.value)
    for name in ("vpcId", "subnetIds", "dbName", "instanceType"):
        assert name in message


def test_empty_subnet_list_rejected() -> None:
    """subnetIds must have at least one entry."""
    with pytest.raises(jsonschema.ValidationError, match="subnetIds"):
        validate_stack_spec(_doc(subnetIds=[]))


@pytest.mark.parametrize("instance_type", ["t4g.micro", "db.t4g", "DB.T4G.MICRO", ""])
def test_malformed_instance_type_rejected(instance_type: str) -> None:
    """instanceType must look like db.<class>.<size>."""
    with pytest.raises(jsonschema.ValidationError, match="instanceType"):
        validate_stack_spec(_doc(instanceType=instance_type))


def test_engine_version_must_be_a_string() -> None:
    """An unquoted YAML float like 15.10 would lose digits, so numbers are refused."""
    with pytest.raises(jsonschema.ValidationError, match="engineVersion"):
        validate_stack_spec(_doc(engineVersion=15.1))


def test_ingress_source_with_two_addresses_rejected() -> None:
    """An ingress source must carry exactly one address field."""
    with pytest.raises(jsonschema.ValidationError, match="ingressSources"):
        validate_stack_spec(
            _doc(ingressSources=[{"cidr": "10.0.0.0/8", "securityGroupId": "sg-0abc"}])
        )


def test_unknown_spec_field_rejected() -> None:
    """Typos in spec keys are caught."""
    with pytest.raises(jsonschema.ValidationError, match="backupRetentionDay"):
        validate_stack_spec(_doc(backupRetentionDay=7))


def test_unknown_removal_policy_rejected() -> None:
    """instance.removalPolicy is limited to destroy and retain."""
    with pytest.raises(jsonschema.ValidationError, match="removalPolicy"):
        validate_stack_spec(_doc(instance={"removalPolicy": "snapshot"}))


@pytest.mark.parametrize("db_name", ["OrdersDb", "SAMPLEDB", "1orders", "orders-db", "orders_db"])
def test_db_name_must_be_a_valid_instance_identifier(db_name: str) -> None:
    """dbName doubles as the RDS instance identifier, so it is lowercase alphanumeric."""
    with pytest.raises(jsonschema.ValidationError, match="dbName"):
        validate_stack_spec(_doc(dbName=db_name))


def test_lowercase_db_name_accepted() -> None:
    """Lowercase letters followed by digits pass."""
    validate_stack_spec(_doc(dbName="orders2"))
