from sfcluster.models import ClusterRequest, ClusterSettings
from sfcluster.services.pulumi_engine import PulumiEngine


class _RecordingStack:
    def __init__(self):
        self.config = {}

    def set_config(self, key, value):
        self.config[key] = value.value


def test_location_defaults_to_southeast_asia():
    assert ClusterSettings().location == "SoutheastAsia"


def test_location_follows_environment(monkeypatch):
    monkeypatch.setenv("AZURE_LOCATION", "eastus2")
    assert ClusterSettings().location == "eastus2"
    assert ClusterSettings(location="westus").location == "westus"


def test_provider_location_follows_environment(monkeypatch):
    monkeypatch.setenv("AZURE_LOCATION", "eastus2")
    stack = _RecordingStack()
    PulumiEngine._set_config(stack, ClusterRequest())
    assert stack.config == {"azure-native:location": "eastus2"}
