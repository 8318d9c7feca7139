"""Database security group: self reference, optional public ingress, per-source rules, open egress."""

from dataclasses import dataclass

import pulumi
import pulumi_aws

from pgstack.config import IngressSource
from pgstack.networking.network import NetworkContext

POSTGRES_PORT = 5432
ANY_IPV4 = "0.0.0.0/0"


@dataclass(frozen=True)
class ConnectionPort:
    protocol: str
    from_port: int
    to_port: int
    description: str


ALL_TRAFFIC = ConnectionPort("-1", 0, 0, "all traffic")

# Ports opened for every external ingress source, in this order.
POSTGRES_CONNECTION_PORTS: tuple[ConnectionPort, ...] = (
    ConnectionPort("tcp", POSTGRES_PORT, POSTGRES_PORT, "tcp5432 Postgres"),
)


@dataclass(frozen=True)
class SecurityPolicy:
    """Composed security group plus the rule lists it was declared with."""

    network: NetworkContext
    security_group: pulumi_aws.ec2.SecurityGroup
    ingress: tuple[pulumi_aws.ec2.SecurityGroupIngressArgs, ...]
    egress: tuple[pulumi_aws.ec2.SecurityGroupEgressArgs, ...]

    @property
    def id(self) -> pulumi.Output[str]:
        return self.security_group.id


def _source_ingress(
    source: IngressSource,
    port: ConnectionPort,
) -> pulumi_aws.ec2.SecurityGroupIngressArgs:
    kwargs: dict = {
        "protocol": port.protocol,
        "from_port": port.from_port,
        "to_port": port.to_port,
        "description": source.description or port.description,
    }
    if source.cidr:
        kwargs["cidr_blocks"] = [source.cidr]
    elif source.ipv6_cidr:
        kwargs["ipv6_cidr_blocks"] = [source.ipv6_cidr]
    elif source.security_group_id:
        kwargs["security_groups"] = [source.security_group_id]
    else:
        kwargs["prefix_list_ids"] = [source.prefix_list_id]
    return pulumi_aws.ec2.SecurityGroupIngressArgs(**kwargs)


def build_ingress_rules(
    ingress_sources: list[IngressSource],
    allow_public_ingress: bool = False,
    connection_ports: tuple[ConnectionPort, ...] = POSTGRES_CONNECTION_PORTS,
) -> list[pulumi_aws.ec2.SecurityGroupIngressArgs]:
    """Ingress rules in declaration order.

    First "all from self", then (opt-in) PostgreSQL from anywhere, then one
    rule per source and connection port, sources outermost.
    """
    rules = [
        pulumi_aws.ec2.SecurityGroupIngressArgs(
            protocol=ALL_TRAFFIC.protocol,
            from_port=ALL_TRAFFIC.from_port,
            to_port=ALL_TRAFFIC.to_port,
            self=True,
            description="all from self",
        )
    ]
    if allow_public_ingress:
        pulumi.log.warn(
            f"allowPublicIngress is set: port {POSTGRES_PORT} is open to {ANY_IPV4}"
        )
        rules.append(
            pulumi_aws.ec2.SecurityGroupIngressArgs(
                protocol="tcp",
                from_port=POSTGRES_PORT,
                to_port=POSTGRES_PORT,
                cidr_blocks=[ANY_IPV4],
                description="all in",
            )
        )
    for source in ingress_sources:
        for port in connection_ports:
            rules.append(_source_ingress(source, port))
    return rules


def build_egress_rules() -> list[pulumi_aws.ec2.SecurityGroupEgressArgs]:
    return [
        pulumi_aws.ec2.SecurityGroupEgressArgs(
            protocol=ALL_TRAFFIC.protocol,
            from_port=ALL_TRAFFIC.from_port,
            to_port=ALL_TRAFFIC.to_port,
            cidr_blocks=[ANY_IPV4],
            description="all out",
        )
    ]


def create_database_security_group(
    stack_name: str,
    network: NetworkContext,
    ingress_sources: list[IngressSource],
    aws_provider: pulumi_aws.Provider,
    allow_public_ingress: bool = False,
) -> SecurityPolicy:
    """Create the database security group inside the resolved VPC."""
    ingress = build_ingress_rules(ingress_sources, allow_public_ingress)
    egress = build_egress_rules()
    security_group = pulumi_aws.ec2.SecurityGroup(
        f"{stack_name}_database_sg",
        name=f"{stack_name}Database",
        description=f"{stack_name}Database",
        vpc_id=network.vpc_id,
        ingress=ingress,
        egress=egress,
        opts=pulumi.ResourceOptions(provider=aws_provider),
    )
    return SecurityPolicy(
        network=network,
        security_group=security_group,
        ingress=tuple(ingress),
        egress=tuple(egress),
    )
