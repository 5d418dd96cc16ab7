from __future__ import annotations
import os
from typing import List, Optional, Dict
from pydantic import BaseModel, Field

class ClusterSettings(BaseModel):
    # Resource group
    resource_group_name: str = "apulsf"
    location: str = Field(default_factory=lambda: os.getenv("AZURE_LOCATION", "SoutheastAsia"))
    cluster_name: str = "thepulsf"
    tags: Dict[str, str] = Field(
        default_factory=lambda: {"resourceType": "Service Fabric", "clusterName": "thepulsf"}
    )

    # Storage
    log_storage_account: str = "sflogstore"
    diagnostics_storage_account: str = "sfappdxstore"
    storage_sku: str = "Standard_LRS"
    storage_kind: str = "StorageV2"

    # Network
    vnet_name: str = "thevnet4sf"
    vnet_address_space: str = "10.10.0.0/16"
    subnet_name: str = "Subnet0"
    subnet_prefix: str = "10.10.10.0/24"
    public_ip_name: str = "thesfpubip"
    dns_label: str = "thepulsf"

    # Load balancer
    lb_name: str = "thepulsflb4set0"
    lb_frontend_name: str = "LoadBalancerIPConfig"
    lb_backend_pool_name: str = "LoadBalancerBEAddressPool"
    lb_nat_pool_name: str = "LoadBalancerBEAddressNatPool"
    lb_ports: List[int] = Field(default_factory=lambda: [19000, 19080, 80, 443])
    lb_idle_timeout_minutes: int = 5
    probe_interval_seconds: int = 5
    probe_count: int = 2
    nat_frontend_port_start: int = 3389
    nat_frontend_port_end: int = 4500
    nat_backend_port: int = 3389

    # Service Fabric
    node_type_name: str = "nt0vm"
    client_connection_port: int = 19000
    http_gateway_port: int = 19080
    application_port_start: int = 20000
    application_port_end: int = 30000
    ephemeral_port_start: int = 49152
    ephemeral_port_end: int = 65534
    durability_level: str = "Bronze"
    reliability_level: str = "Bronze"
    certificate_thumbprint: str = "A1B2C3D4E5F60718293A4B5C6D7E8F9012345678"
    certificate_store: str = "My"
    certificate_source_vault_id: str = (
        "/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/apulsf"
        "/providers/Microsoft.KeyVault/vaults/thepulsfkv"
    )
    certificate_url: str = "https://thepulsfkv.vault.azure.net/secrets/thepulsfcert/0123456789abcdef"
    # Used until the cluster resource computes its own endpoint
    cluster_endpoint: str = (
        "https://southeastasia.servicefabric.azure.com/runtime/clusters/"
        "00000000-0000-0000-0000-000000000000"
    )

    # Scale set
    vm_sku: str = "Standard_D2s_v3"
    vm_tier: str = "Standard"
    vm_capacity: int = 5
    admin_username: str = "sfadmin"
    admin_password: Optional[str] = Field(default_factory=lambda: os.getenv("SF_ADMIN_PASSWORD"))
    image_publisher: str = "MicrosoftWindowsServer"
    image_offer: str = "WindowsServer"
    image_sku: str = "2019-Datacenter"
    image_version: str = "latest"

class ClusterRequest(BaseModel):
    project: str = "sfcluster"
    env: str = "dev"
    version: int = 3
    settings: ClusterSettings = Field(default_factory=ClusterSettings)

class Declaration(BaseModel):
    key: str
    kind: str
    depends_on: List[str] = Field(default_factory=list)

class AzureCreds(BaseModel):
    clientId: str
    clientSecret: str
    subscriptionId: str
    tenantId: str

class PlanRequest(BaseModel):
    cluster: ClusterRequest = Field(default_factory=ClusterRequest)

class PreviewRequest(BaseModel):
    cluster: ClusterRequest = Field(default_factory=ClusterRequest)
    creds: Optional[AzureCreds] = None

class UpRequest(BaseModel):
    cluster: ClusterRequest = Field(default_factory=ClusterRequest)
    creds: Optional[AzureCreds] = None

class DestroyRequest(BaseModel):
    project: str = "sfcluster"
    env: str = "dev"
    resource_group_name: str = "apulsf"
    creds: Optional[AzureCreds] = None
