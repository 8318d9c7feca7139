"""Engine selection and the parameter group bound to it."""

from dataclasses import dataclass
import re

import pulumi
import pulumi_aws

from pgstack.config import DEFAULT_ENGINE_VERSION

ENGINE = "postgres"
_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")


@dataclass(frozen=True)
class EngineSelection:
    """The one engine/version value shared by the parameter group and the instance."""

    version: str
    engine: str = ENGINE

    @classmethod
    def from_version(cls, version: str | None = None) -> "EngineSelection":
        version = str(version or DEFAULT_ENGINE_VERSION)
        if not _VERSION_RE.match(version):
            raise ValueError(f"Invalid engine version: {version!r}")
        return cls(version=version)

    @property
    def major(self) -> int:
        return int(self.version.split(".")[0])

    @property
    def family(self) -> str:
        """Parameter group family, e.g. postgres15 or postgres9.6."""
        if self.major >= 10:
            return f"{self.engine}{self.major}"
        parts = self.version.split(".")
        if len(parts) < 2:
            raise ValueError(f"Engine version {self.version!r} needs a minor version")
        return f"{self.engine}{parts[0]}.{parts[1]}"


def parameter_group_name(stack_name: str, engine: EngineSelection) -> str:
    """RDS parameter group name: lowercase letters, digits and single hyphens only."""
    raw = f"{stack_name}-{engine.family}".lower()
    return re.sub(r"-+", "-", re.sub(r"[^a-z0-9]", "-", raw)).strip("-")


@dataclass(frozen=True)
class ParameterSet:
    engine: EngineSelection
    parameter_group: pulumi_aws.rds.ParameterGroup

    @property
    def name(self) -> pulumi.Output[str]:
        return self.parameter_group.name


def create_parameter_group(
    stack_name: str,
    engine: EngineSelection,
    aws_provider: pulumi_aws.Provider,
    parameters: dict[str, str] | None = None,
) -> ParameterSet:
    """Create the parameter group for engine's family; extra parameters go in sorted by name."""
    parameter_group = pulumi_aws.rds.ParameterGroup(
        f"{stack_name}_parameter_group",
        name=parameter_group_name(stack_name, engine),
        family=engine.family,
        description=f"{stack_name} {engine.engine} {engine.version} parameters",
        parameters=[
            pulumi_aws.rds.ParameterGroupParameterArgs(name=name, value=value)
            for name, value in sorted((parameters or {}).items())
        ],
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return ParameterSet(engine=engine, parameter_group=parameter_group)
