"""Stack exports consumed by downstream deployments."""

from dataclasses import dataclass
from typing import Any

import pulumi

ENDPOINT_EXPORT = "PostgresEndPoint"
USERNAME_EXPORT = "PostgresUserName"
DB_NAME_EXPORT = "PostgresDbName"


@dataclass(frozen=True)
class OutputSet:
    endpoint_address: pulumi.Input[str]
    username: str
    db_name: str

    def as_exports(self) -> dict[str, Any]:
        return {
            ENDPOINT_EXPORT: self.endpoint_address,
            USERNAME_EXPORT: self.username,
            DB_NAME_EXPORT: self.db_name,
        }


def build_output_set(
    endpoint_address: pulumi.Input[str] | None,
    username: str | None,
    db_name: str | None,
) -> OutputSet:
    missing = [
        name
        for name, value in (
            (ENDPOINT_EXPORT, endpoint_address),
            (USERNAME_EXPORT, username),
            (DB_NAME_EXPORT, db_name),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValueError(f"cannot export empty values: {', '.join(missing)}")
    return OutputSet(
        endpoint_address=endpoint_address,
        username=str(username),
        db_name=str(db_name),
    )


def export_outputs(exports: dict[str, Any]) -> None:
    """Register each value as a Pulumi stack export under its name."""
    for name, value in exports.items():
        pulumi.export(name, value)
