import pytest

from sfcluster.errors import TopologyError
from sfcluster.models import ClusterSettings
from sfcluster.services.load_balancer import (
    build_gateway_rule,
    build_nat_pool,
    build_probes_and_rules,
)


def child_id(section, name):
    return f"/lb/{section}/{name}"


def test_one_probe_and_rule_per_port():
    settings = ClusterSettings()
    probes, rules = build_probes_and_rules(settings, [19000, 19080, 80, 443], child_id)

    assert sorted(p.port for p in probes) == [80, 443, 19000, 19080]
    assert sorted(r.frontend_port for r in rules) == [80, 443, 19000, 19080]
    assert len(probes) == len(rules) == 4

    pools = {r.backend_address_pool.id for r in rules}
    assert pools == {"/lb/backendAddressPools/LoadBalancerBEAddressPool"}

    for rule in rules:
        assert rule.backend_port == rule.frontend_port
        assert rule.probe.id == f"/lb/probes/lbprobe{rule.frontend_port}"


def test_duplicate_ports_rejected():
    with pytest.raises(TopologyError):
        build_probes_and_rules(ClusterSettings(), [80, 80], child_id)


def test_gateway_rule_maps_client_port_to_http_gateway():
    probes, rules = build_gateway_rule(ClusterSettings(), child_id)
    assert len(probes) == len(rules) == 1
    assert rules[0].frontend_port == 19000
    assert rules[0].backend_port == 19080
    assert probes[0].port == 19000
    assert rules[0].probe.id == "/lb/probes/lbsfgwprobe"


def test_nat_pool_maps_range_to_rdp():
    pool = build_nat_pool(ClusterSettings(), child_id)
    assert pool.frontend_port_range_start == 3389
    assert pool.frontend_port_range_end == 4500
    assert pool.backend_port == 3389


def test_nat_pool_empty_range():
    settings = ClusterSettings(nat_frontend_port_start=4500, nat_frontend_port_end=3389)
    with pytest.raises(TopologyError):
        build_nat_pool(settings, child_id)
