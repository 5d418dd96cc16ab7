import pytest
from fastapi.testclient import TestClient

from sfcluster import main
from sfcluster.services.pulumi_engine import PulumiEngine


@pytest.fixture
def client():
    return TestClient(main.app)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["topologyVersions"] == [1, 2, 3]
    assert body["backend"].startswith("file://")


def test_plan(client):
    res = client.post("/plan", json={"cluster": {"version": 2}})
    assert res.status_code == 200
    body = res.json()
    keys = [d["key"] for d in body["declarations"]]
    assert keys[0] == "resourceGroup"
    assert keys[-1] == "vmss"
    assert "sfCluster" not in keys
    assert body["waves"][0] == ["resourceGroup"]


def test_plan_unknown_version(client):
    res = client.post("/plan", json={"cluster": {"version": 9}})
    assert res.status_code == 400
    assert "Unsupported topology version" in res.json()["detail"]


def test_preview_passes_cluster_request(client, monkeypatch):
    seen = {}

    def fake_preview(request):
        seen.update(request)
        return {"preview": True, "changeSummary": {"create": 10}}

    monkeypatch.setattr(PulumiEngine, "preview", staticmethod(fake_preview))
    res = client.post("/preview", json={"cluster": {"env": "qa", "settings": {"vm_capacity": 7}}})
    assert res.status_code == 200
    assert res.json()["changeSummary"] == {"create": 10}
    assert seen["env"] == "qa"
    assert seen["settings"]["vm_capacity"] == 7
    assert seen["settings"]["lb_ports"] == [19000, 19080, 80, 443]


def test_up_failure_is_400(client, monkeypatch):
    def failing_up(request):
        raise ValueError("Deployment failed: QuotaExceeded")

    monkeypatch.setattr(PulumiEngine, "up", staticmethod(failing_up))
    res = client.post("/up", json={})
    assert res.status_code == 400
    assert "QuotaExceeded" in res.json()["detail"]


def test_destroy_forwards_resource_group(client, monkeypatch):
    calls = []

    def fake_destroy(project, env, resource_group, creds=None):
        calls.append((project, env, resource_group, creds))
        return {"destroyed": True}

    monkeypatch.setattr(PulumiEngine, "destroy", staticmethod(fake_destroy))
    res = client.post("/destroy", json={"project": "sfcluster", "env": "dev"})
    assert res.status_code == 200
    assert calls == [("sfcluster", "dev", "apulsf", None)]


def test_plan_reports_mixed_ip_versions(client):
    res = client.post("/plan", json={"cluster": {"settings": {"subnet_prefix": "fd00::/64"}}})
    assert res.status_code == 200
    validation = res.json()["validation"]
    assert validation["valid"] is False
    assert any("IPv6" in e for e in validation["errors"])
