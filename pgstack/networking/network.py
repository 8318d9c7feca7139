"""Resolve the target VPC and subnets into placement handles."""

from dataclasses import dataclass

import pulumi
import pulumi_aws


@dataclass(frozen=True)
class NetworkContext:
    """Network placement for the database: VPC, the chosen subnets, and the AZs they span.

    availability_zones and verified_subnet_ids only resolve once every subnet
    has been looked up and found inside vpc_id, so resources built from them
    wait on that check.
    """

    vpc_id: str
    subnet_ids: tuple[str, ...]
    availability_zones: pulumi.Output[list[str]]
    verified_subnet_ids: pulumi.Output[list[str]]


def sanitize_subnet_id(raw: str) -> str:
    """Drop every whitespace and underscore character from a subnet id.

    Idempotent: sanitizing an already clean id returns it unchanged.
    """
    return "".join(ch for ch in raw if ch != "_" and not ch.isspace())


def check_subnet_placement(
    vpc_id: str,
    subnet_ids: list[str],
    subnet_vpc_ids: list[str],
    subnet_zones: list[str],
    available_zones: list[str],
) -> list[str]:
    """Return the distinct AZs the subnets span, in subnet order.

    Raises ValueError naming every subnet outside vpc_id or in a zone that
    is not available.
    """
    outside = [s for s, v in zip(subnet_ids, subnet_vpc_ids) if v != vpc_id]
    if outside:
        raise ValueError(f"subnets not in {vpc_id}: {', '.join(outside)}")
    unavailable = [
        f"{s} ({z})" for s, z in zip(subnet_ids, subnet_zones) if z not in available_zones
    ]
    if unavailable:
        raise ValueError(f"subnets in unavailable zones: {', '.join(unavailable)}")
    zones = list(dict.fromkeys(subnet_zones))
    if len(zones) < 2:
        pulumi.log.warn(f"Subnets of {vpc_id} span a single availability zone: {zones[0]}")
    return zones


def resolve_network(
    vpc_id: str,
    subnet_ids: list[str],
    aws_provider: pulumi_aws.Provider,
) -> NetworkContext:
    """Build a NetworkContext; subnets keep input order and are not deduplicated."""
    if not vpc_id:
        raise ValueError("vpcId is required")
    if not subnet_ids:
        raise ValueError("subnetIds must contain at least one subnet id")

    handles: list[str] = []
    for raw in subnet_ids:
        clean = sanitize_subnet_id(raw)
        if not clean:
            raise ValueError(f"subnet id {raw!r} is empty after sanitization")
        if clean != raw:
            pulumi.log.info(f"Subnet id {raw!r} sanitized to {clean!r}")
        handles.append(clean)

    invoke_opts = pulumi.InvokeOptions(provider=aws_provider)
    available = pulumi_aws.get_availability_zones_output(state="available", opts=invoke_opts)
    subnets = [pulumi_aws.ec2.get_subnet_output(id=s, opts=invoke_opts) for s in handles]

    count = len(handles)
    zones = pulumi.Output.all(
        available.names,
        *[s.vpc_id for s in subnets],
        *[s.availability_zone for s in subnets],
    ).apply(
        lambda values: check_subnet_placement(
            vpc_id,
            handles,
            values[1 : count + 1],
            values[count + 1 :],
            values[0],
        )
    )
    return NetworkContext(
        vpc_id=vpc_id,
        subnet_ids=tuple(handles),
        availability_zones=zones,
        verified_subnet_ids=zones.apply(lambda _: list(handles)),
    )
