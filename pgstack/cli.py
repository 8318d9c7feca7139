"""
pgstack: preview, create or destroy the PostgreSQL stack described by a stack YAML.

The Pulumi state backend comes from PULUMI_BACKEND_URL (or `pulumi login`);
the region from --region or AWS_REGION.
"""

import argparse
from dataclasses import dataclass
import os
from pathlib import Path
import subprocess
import sys

import jsonschema
import yaml

from pgstack.spec.validator import validate_stack_spec

PROGRAM_DIR = Path(__file__).resolve().parent
YAML_PATH_ENV = "POSTGRES_STACK_YAML_PATH"
DEFAULT_STACK_PREFIX = "dev"


@dataclass(frozen=True)
class StackTarget:
    """One Pulumi stack: the validated YAML it is built from and where it lives."""

    yaml_path: Path
    name: str
    region: str
    prefix: str = DEFAULT_STACK_PREFIX

    @property
    def pulumi_stack(self) -> str:
        return f"{self.prefix}.{self.name}.{self.region}"


def load_target(stack_yaml: str, region: str | None, prefix: str = DEFAULT_STACK_PREFIX) -> StackTarget:
    """Validate the stack YAML and resolve the Pulumi stack it maps to.

    Exits with a message for a missing file, an invalid document or no region.
    """
    path = Path(stack_yaml).resolve()
    if not path.exists():
        sys.exit(f"stack file not found: {path}")
    with open(path, encoding="utf-8") as f:
        document = yaml.safe_load(f)
    try:
        validate_stack_spec(document)
    except (jsonschema.ValidationError, ValueError) as e:
        sys.exit(str(e))
    region = region or os.environ.get("AWS_REGION")
    if not region:
        sys.exit("no region: pass --region or set AWS_REGION")
    return StackTarget(yaml_path=path, name=document["metadata"]["name"], region=region, prefix=prefix)


def run_pulumi(target: StackTarget, *args: str, check: bool = True) -> int:
    env = {**os.environ, YAML_PATH_ENV: str(target.yaml_path)}
    result = subprocess.run(
        ["pulumi", *args, "--stack", target.pulumi_stack, "--cwd", str(PROGRAM_DIR)],
        env=env,
        check=check,
    )
    return result.returncode


def deploy(target: StackTarget, apply: bool) -> None:
    """Select (or create) the stack, pin its region, then preview or apply."""
    if run_pulumi(target, "stack", "select", check=False) != 0:
        run_pulumi(target, "stack", "init")
    run_pulumi(target, "config", "set", "aws:region", target.region)
    if apply:
        run_pulumi(target, "up", "--yes")
        print(f"{target.name}: exports PostgresEndPoint, PostgresUserName, PostgresDbName")
    else:
        run_pulumi(target, "preview")


def destroy(target: StackTarget, assume_yes: bool = False) -> None:
    """Destroy every resource of the stack and remove the stack itself."""
    if run_pulumi(target, "stack", "select", check=False) != 0:
        sys.exit(f"no stack {target.pulumi_stack}")
    if not assume_yes:
        answer = input(f"Destroy database {target.name} in {target.region}? [y/N]: ")
        if answer.strip().lower() != "y":
            sys.exit("cancelled")
    run_pulumi(target, "destroy", "--yes")
    run_pulumi(target, "stack", "rm", "--yes")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="pgstack", description=__doc__.strip().splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)
    for command, help_text in (
        ("preview", "show the changes a stack YAML would make"),
        ("create", "create or update the stack"),
        ("destroy", "delete the database, its secret and every other stack resource"),
    ):
        p = sub.add_parser(command, help=help_text)
        p.add_argument("stack_yaml")
        p.add_argument("--region")
        p.add_argument("--prefix", default=DEFAULT_STACK_PREFIX, help="stack name prefix (default: dev)")
        if command == "destroy":
            p.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    args = parser.parse_args(argv)

    target = load_target(args.stack_yaml, args.region, args.prefix)
    if args.command == "destroy":
        destroy(target, assume_yes=args.yes)
    else:
        deploy(target, apply=args.command == "create")


if __name__ == "__main__":
    main()
