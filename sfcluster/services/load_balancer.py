from __future__ import annotations
from typing import Callable, List, Sequence, Tuple

import pulumi
from pulumi_azure_native import network

from sfcluster.errors import TopologyError
from sfcluster.models import ClusterSettings

# (section, name) -> id of a child of the load balancer, e.g. ("probes", "lbprobe80")
ChildId = Callable[[str, str], pulumi.Input[str]]


def probe_name(port: int) -> str:
    return f"lbprobe{port}"


def rule_name(port: int) -> str:
    return f"lbrule{port}"


def build_probes_and_rules(
    settings: ClusterSettings, ports: Sequence[int], child_id: ChildId
) -> Tuple[List[network.ProbeArgs], List[network.LoadBalancingRuleArgs]]:
    """One TCP probe and one rule per port, every rule on the single backend pool."""
    if len(set(ports)) != len(ports):
        raise TopologyError(f"Duplicate load balancer ports: {list(ports)}")

    frontend = network.SubResourceArgs(id=child_id("frontendIPConfigurations", settings.lb_frontend_name))
    pool = network.SubResourceArgs(id=child_id("backendAddressPools", settings.lb_backend_pool_name))

    probes = []
    rules = []
    for port in ports:
        probes.append(network.ProbeArgs(
            name=probe_name(port),
            interval_in_seconds=settings.probe_interval_seconds,
            number_of_probes=settings.probe_count,
            port=port,
            protocol="Tcp",
        ))
        rules.append(network.LoadBalancingRuleArgs(
            name=rule_name(port),
            frontend_ip_configuration=frontend,
            backend_address_pool=pool,
            frontend_port=port,
            backend_port=port,
            idle_timeout_in_minutes=settings.lb_idle_timeout_minutes,
            protocol="Tcp",
            enable_floating_ip=False,
            probe=network.SubResourceArgs(id=child_id("probes", probe_name(port))),
        ))
    return probes, rules


def build_gateway_rule(
    settings: ClusterSettings, child_id: ChildId
) -> Tuple[List[network.ProbeArgs], List[network.LoadBalancingRuleArgs]]:
    """The first topology's single client-gateway rule: 19000 in, 19080 on the nodes."""
    probe = network.ProbeArgs(
        name="lbsfgwprobe",
        interval_in_seconds=settings.probe_interval_seconds,
        number_of_probes=settings.probe_count,
        port=settings.client_connection_port,
        protocol="Tcp",
    )
    rule = network.LoadBalancingRuleArgs(
        name="LBRule",
        frontend_ip_configuration=network.SubResourceArgs(
            id=child_id("frontendIPConfigurations", settings.lb_frontend_name)
        ),
        backend_address_pool=network.SubResourceArgs(
            id=child_id("backendAddressPools", settings.lb_backend_pool_name)
        ),
        frontend_port=settings.client_connection_port,
        backend_port=settings.http_gateway_port,
        idle_timeout_in_minutes=settings.lb_idle_timeout_minutes,
        protocol="Tcp",
        enable_floating_ip=False,
        probe=network.SubResourceArgs(id=child_id("probes", "lbsfgwprobe")),
    )
    return [probe], [rule]


def build_nat_pool(settings: ClusterSettings, child_id: ChildId) -> network.InboundNatPoolArgs:
    if settings.nat_frontend_port_start > settings.nat_frontend_port_end:
        raise TopologyError(
            f"NAT pool range {settings.nat_frontend_port_start}-{settings.nat_frontend_port_end} is empty"
        )
    return network.InboundNatPoolArgs(
        name=settings.lb_nat_pool_name,
        frontend_ip_configuration=network.SubResourceArgs(
            id=child_id("frontendIPConfigurations", settings.lb_frontend_name)
        ),
        frontend_port_range_start=settings.nat_frontend_port_start,
        frontend_port_range_end=settings.nat_frontend_port_end,
        backend_port=settings.nat_backend_port,
        protocol="Tcp",
    )
