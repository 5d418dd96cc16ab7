import os
import tempfile

import pulumi
import pytest
from pulumi.runtime import rpc

# Keep the local Pulumi backend out of the working tree while the API module is imported
_scratch = tempfile.mkdtemp(prefix="sfcluster-tests-")
os.environ.setdefault("PULUMI_STATE_DIR", os.path.join(_scratch, "state"))
os.environ.setdefault("PULUMI_WORK_DIR", os.path.join(_scratch, "work"))
os.environ.setdefault("PULUMI_HOME", os.path.join(_scratch, "home"))
os.environ.pop("AZURE_LOCATION", None)

SUBSCRIPTION_ID = "11111111-2222-3333-4444-555555555555"

# Input holding the Azure-visible name of each resource type
_NAME_INPUTS = {
    "azure-native:resources:ResourceGroup": "resourceGroupName",
    "azure-native:storage:StorageAccount": "accountName",
    "azure-native:network:VirtualNetwork": "virtualNetworkName",
    "azure-native:network:Subnet": "subnetName",
    "azure-native:network:PublicIPAddress": "publicIpAddressName",
    "azure-native:network:LoadBalancer": "loadBalancerName",
    "azure-native:servicefabric:Cluster": "clusterName",
    "azure-native:compute:VirtualMachineScaleSet": "vmScaleSetName",
}


def _unwrap_secrets(value):
    """Strip Pulumi's secret sentinel wrappers so recorded inputs can be inspected directly."""
    if isinstance(value, dict):
        if value.get(rpc._special_sig_key) == rpc._special_secret_sig:
            return _unwrap_secrets(value.get("value"))
        return {k: _unwrap_secrets(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_unwrap_secrets(v) for v in value]
    return value


class ServiceFabricMocks(pulumi.runtime.Mocks):
    """Echoes inputs back as state and fills in the outputs Azure would compute."""

    def __init__(self):
        self.resources = {}
        self.calls = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        state = dict(args.inputs)
        name = state.get(_NAME_INPUTS.get(args.typ, ""), args.name)
        state["name"] = name
        location = str(state.get("location", "southeastasia")).lower()

        if args.typ == "azure-native:storage:StorageAccount":
            state["primaryEndpoints"] = {
                svc: f"https://{name}.{svc}.core.windows.net/"
                for svc in ("blob", "dfs", "file", "queue", "table", "web")
            }
        elif args.typ == "azure-native:network:PublicIPAddress":
            dns = dict(state.get("dnsSettings") or {})
            dns["fqdn"] = f"{dns.get('domainNameLabel')}.{location}.cloudapp.azure.com"
            state["dnsSettings"] = dns
        elif args.typ == "azure-native:servicefabric:Cluster":
            state["clusterEndpoint"] = (
                f"https://{location}.servicefabric.azure.com/runtime/clusters/{name}-computed"
            )

        resource_id = (
            f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{state.get('resourceGroupName', name)}"
            f"/providers/{args.typ}/{name}"
        )
        self.resources[args.name] = {"type": args.typ, "id": resource_id, "inputs": _unwrap_secrets(dict(args.inputs)), "state": _unwrap_secrets(state)}
        return [resource_id, state]

    def call(self, args: pulumi.runtime.MockCallArgs):
        self.calls.append((args.token, dict(args.args)))
        if args.token == "azure-native:storage:listStorageAccountKeys":
            account = args.args["accountName"]
            return {
                "keys": [
                    {"keyName": "key1", "value": f"{account}-key1", "permissions": "FULL", "creationTime": "2020-01-01T00:00:00Z"},
                    {"keyName": "key2", "value": f"{account}-key2", "permissions": "FULL", "creationTime": "2020-01-01T00:00:00Z"},
                ]
            }
        if args.token == "azure-native:authorization:getClientConfig":
            return {
                "clientId": "client",
                "objectId": "object",
                "subscriptionId": SUBSCRIPTION_ID,
                "tenantId": "tenant",
            }
        return {}


@pytest.fixture
def mocks():
    m = ServiceFabricMocks()
    pulumi.runtime.set_mocks(m, project="sfcluster", stack="test", preview=False)
    return m
