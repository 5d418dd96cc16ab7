from __future__ import annotations
import logging
from typing import Dict, Any, List
import pulumi
from pulumi_azure_native import (
    authorization,
    resources,
    storage,
    network,
    servicefabric,
    compute,
)
from sfcluster.models import ClusterSettings
from .naming import storage_account_name
from .storage_keys import storage_account_key
from .load_balancer import build_gateway_rule, build_probes_and_rules, build_nat_pool
from .version_registry import VersionRegistry
from .dependency_plan import (
    DeclarationLedger,
    plan_for,
    RESOURCE_GROUP,
    STORAGE_LOG,
    STORAGE_APP_DX,
    VNET,
    SUBNET,
    PUBLIC_IP,
    PRIMARY_STORAGE_KEY,
    KEY1,
    KEY2,
    LOAD_BALANCER,
    CLUSTER,
    SCALE_SET,
)

logger = logging.getLogger(__name__)


def _attr(obj, name):
    # Provider responses arrive as typed objects, mocks may hand back dicts
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class ServiceFabricTopology:
    """Declares the Service Fabric cluster resources of one topology version, leaves first."""

    def __init__(self, settings: ClusterSettings, version: int = VersionRegistry.LATEST):
        self.settings = settings
        self.version = version
        self.features = VersionRegistry.get_features(version)
        self.ledger = DeclarationLedger(plan_for(version))
        self._outputs: Dict[str, pulumi.Output[Any]] = {}

        self.resource_group = None
        self.storage_log = None
        self.storage_app_dx = None
        self.vnet = None
        self.subnet = None
        self.public_ip = None
        self.load_balancer = None
        self.cluster = None
        self.scale_set = None

    def outputs(self) -> Dict[str, pulumi.Output[Any]]:
        return self._outputs

    def declared(self) -> List[str]:
        return self.ledger.order()

    def build(self) -> "ServiceFabricTopology":
        logger.info(
            "Declaring topology version %s for cluster %s in %s",
            self.version, self.settings.cluster_name, self.settings.location,
        )
        self._create_resource_group()
        self._create_storage_accounts()
        self._create_network()
        self._create_key_lookups()
        self._create_load_balancer()
        if self.features.cluster_resource:
            self._create_cluster()
        if self.features.scale_set:
            self._create_scale_set()
        logger.info("Declared %d resources and lookups", len(self.declared()))
        return self

    def _declare(self, key: str, value):
        logger.debug("Declaring %s", key)
        return self.ledger.declare(key, value)

    # -------------------- Resources --------------------

    def _create_resource_group(self):
        s = self.settings
        self.resource_group = self._declare(RESOURCE_GROUP, resources.ResourceGroup(
            "resourceGroup",
            resource_group_name=s.resource_group_name,
            location=s.location,
            tags=s.tags,
        ))

    def _storage_account(self, logical: str, desired: str):
        s = self.settings
        return storage.StorageAccount(
            logical,
            resource_group_name=self.resource_group.name,
            account_name=storage_account_name(desired),
            location=self.resource_group.location,
            sku=storage.SkuArgs(name=s.storage_sku),
            kind=s.storage_kind,
            tags=s.tags,
        )

    def _create_storage_accounts(self):
        # Log store backs the cluster's support logs, AppDx the VM diagnostics
        self.storage_log = self._declare(
            STORAGE_LOG, self._storage_account("saLog", self.settings.log_storage_account)
        )
        self.storage_app_dx = self._declare(
            STORAGE_APP_DX, self._storage_account("saAppDx", self.settings.diagnostics_storage_account)
        )

    def _create_network(self):
        s = self.settings
        rg = self.resource_group

        self.vnet = self._declare(VNET, network.VirtualNetwork(
            "vnet",
            resource_group_name=rg.name,
            virtual_network_name=s.vnet_name,
            location=rg.location,
            address_space=network.AddressSpaceArgs(address_prefixes=[s.vnet_address_space]),
            tags=s.tags,
        ))

        self.subnet = self._declare(SUBNET, network.Subnet(
            "subnet",
            resource_group_name=rg.name,
            virtual_network_name=self.vnet.name,
            subnet_name=s.subnet_name,
            address_prefix=s.subnet_prefix,
        ))

        self.public_ip = self._declare(PUBLIC_IP, network.PublicIPAddress(
            "pubip4sf",
            resource_group_name=rg.name,
            public_ip_address_name=s.public_ip_name,
            location=rg.location,
            dns_settings=network.PublicIPAddressDnsSettingsArgs(domain_name_label=s.dns_label),
            public_ip_allocation_method=network.IPAllocationMethod.DYNAMIC,
            tags=s.tags,
        ))

    def _create_key_lookups(self):
        rg_name = self.resource_group.name

        primary = storage_account_key(rg_name, self.storage_app_dx.name, 0)
        self._outputs[PRIMARY_STORAGE_KEY] = self._declare(PRIMARY_STORAGE_KEY, primary)

        if self.features.node_key_outputs:
            self._outputs[KEY1] = self._declare(KEY1, storage_account_key(rg_name, self.storage_log.name, 0))
            self._outputs[KEY2] = self._declare(KEY2, storage_account_key(rg_name, self.storage_log.name, 1))

    def _create_load_balancer(self):
        s = self.settings
        rg = self.resource_group
        client = authorization.get_client_config_output()

        def child_id(section: str, name: str) -> pulumi.Output[str]:
            return pulumi.Output.concat(
                "/subscriptions/", client.subscription_id,
                "/resourceGroups/", rg.name,
                "/providers/Microsoft.Network/loadBalancers/", s.lb_name,
                "/", section, "/", name,
            )

        if self.features.per_port_rules:
            probes, rules = build_probes_and_rules(s, s.lb_ports, child_id)
        else:
            probes, rules = build_gateway_rule(s, child_id)

        nat_pools = [build_nat_pool(s, child_id)] if self.features.nat_pool else None

        self.load_balancer = self._declare(LOAD_BALANCER, network.LoadBalancer(
            "lb",
            resource_group_name=rg.name,
            load_balancer_name=s.lb_name,
            location=rg.location,
            frontend_ip_configurations=[network.FrontendIPConfigurationArgs(
                name=s.lb_frontend_name,
                public_ip_address=network.PublicIPAddressArgs(id=self.public_ip.id),
            )],
            backend_address_pools=[network.BackendAddressPoolArgs(name=s.lb_backend_pool_name)],
            load_balancing_rules=rules,
            probes=probes,
            inbound_nat_pools=nat_pools,
            tags=s.tags,
        ))

    def _create_cluster(self):
        s = self.settings
        rg = self.resource_group
        log = self.storage_log

        management_endpoint = self.public_ip.dns_settings.apply(
            lambda d: f"https://{_attr(d, 'fqdn')}:{s.http_gateway_port}"
        )

        self.cluster = self._declare(CLUSTER, servicefabric.Cluster(
            "sfCluster",
            resource_group_name=rg.name,
            cluster_name=s.cluster_name,
            location=rg.location,
            management_endpoint=management_endpoint,
            certificate=servicefabric.CertificateDescriptionArgs(
                thumbprint=s.certificate_thumbprint,
                x509_store_name=s.certificate_store,
            ),
            diagnostics_storage_account_config=servicefabric.DiagnosticsStorageAccountConfigArgs(
                storage_account_name=log.name,
                protected_account_key_name="StorageAccountKey1",
                blob_endpoint=log.primary_endpoints.apply(lambda e: _attr(e, "blob")),
                queue_endpoint=log.primary_endpoints.apply(lambda e: _attr(e, "queue")),
                table_endpoint=log.primary_endpoints.apply(lambda e: _attr(e, "table")),
            ),
            fabric_settings=[servicefabric.SettingsSectionDescriptionArgs(
                name="Security",
                parameters=[servicefabric.SettingsParameterDescriptionArgs(
                    name="ClusterProtectionLevel", value="EncryptAndSign",
                )],
            )],
            node_types=[servicefabric.NodeTypeDescriptionArgs(
                name=s.node_type_name,
                client_connection_endpoint_port=s.client_connection_port,
                http_gateway_endpoint_port=s.http_gateway_port,
                is_primary=True,
                vm_instance_count=s.vm_capacity,
                durability_level=s.durability_level,
                application_ports=servicefabric.EndpointRangeDescriptionArgs(
                    start_port=s.application_port_start, end_port=s.application_port_end,
                ),
                ephemeral_ports=servicefabric.EndpointRangeDescriptionArgs(
                    start_port=s.ephemeral_port_start, end_port=s.ephemeral_port_end,
                ),
            )],
            reliability_level=s.reliability_level,
            upgrade_mode="Automatic",
            vm_image="Windows",
            tags=s.tags,
        ))

    def _node_extension(self) -> compute.VirtualMachineScaleSetExtensionArgs:
        s = self.settings
        if self.features.cluster_resource:
            cluster_endpoint = self.cluster.cluster_endpoint
        else:
            cluster_endpoint = s.cluster_endpoint

        return compute.VirtualMachineScaleSetExtensionArgs(
            name=f"ServiceFabricNodeVmExt_{s.node_type_name}",
            publisher="Microsoft.Azure.ServiceFabric",
            type="ServiceFabricNode",
            type_handler_version="1.1",
            # MUST NOT be enabled: node extension upgrades are driven by the cluster
            auto_upgrade_minor_version=False,
            settings={
                "clusterEndpoint": cluster_endpoint,
                "nodeTypeRef": s.node_type_name,
                "dataPath": "D:\\SvcFab",
                "durabilityLevel": s.durability_level,
                "enableParallelJobs": True,
                "nicPrefixOverride": s.subnet_prefix,
                "certificate": {
                    "thumbprint": s.certificate_thumbprint,
                    "x509StoreName": s.certificate_store,
                },
            },
            protected_settings={
                "StorageAccountKey1": self.ledger[KEY1],
                "StorageAccountKey2": self.ledger[KEY2],
            },
        )

    def _diagnostics_extension(self) -> compute.VirtualMachineScaleSetExtensionArgs:
        app_dx = self.storage_app_dx
        return compute.VirtualMachineScaleSetExtensionArgs(
            name=f"VMDiagnosticsVmExt_{self.settings.node_type_name}",
            publisher="Microsoft.Azure.Diagnostics",
            type="IaaSDiagnostics",
            type_handler_version="1.5",
            auto_upgrade_minor_version=True,
            settings={
                "WadCfg": {
                    "DiagnosticMonitorConfiguration": {
                        "overallQuotaInMB": "50000",
                        "EtwProviders": {
                            "EtwEventSourceProviderConfiguration": [
                                {
                                    "provider": "Microsoft-ServiceFabric-Actors",
                                    "scheduledTransferKeywordFilter": "1",
                                    "scheduledTransferPeriod": "PT5M",
                                    "DefaultEvents": {"eventDestination": "ServiceFabricReliableActorEventTable"},
                                },
                                {
                                    "provider": "Microsoft-ServiceFabric-Services",
                                    "scheduledTransferPeriod": "PT5M",
                                    "DefaultEvents": {"eventDestination": "ServiceFabricReliableServiceEventTable"},
                                },
                            ],
                            "EtwManifestProviderConfiguration": [
                                {
                                    "provider": "cbd93bc2-71e5-4566-b3a7-595d8eeca6e8",
                                    "scheduledTransferLogLevelFilter": "Information",
                                    "scheduledTransferKeywordFilter": "4611686018427387904",
                                    "scheduledTransferPeriod": "PT5M",
                                    "DefaultEvents": {"eventDestination": "ServiceFabricSystemEventTable"},
                                },
                            ],
                        },
                    },
                },
                "StorageAccount": app_dx.name,
            },
            protected_settings={
                "storageAccountName": app_dx.name,
                "storageAccountKey": self.ledger[PRIMARY_STORAGE_KEY],
                "storageAccountEndPoint": "https://core.windows.net/",
            },
        )

    def _create_scale_set(self):
        s = self.settings
        rg = self.resource_group
        lb = self.load_balancer

        extensions = [self._node_extension()]
        if self.features.diagnostics_extension:
            extensions.append(self._diagnostics_extension())

        ip_config = compute.VirtualMachineScaleSetIPConfigurationArgs(
            name=f"NIC-{s.node_type_name}-ipconfig",
            subnet=compute.ApiEntityReferenceArgs(id=self.subnet.id),
            load_balancer_backend_address_pools=[compute.SubResourceArgs(
                id=pulumi.Output.concat(lb.id, "/backendAddressPools/", s.lb_backend_pool_name),
            )],
            load_balancer_inbound_nat_pools=[compute.SubResourceArgs(
                id=pulumi.Output.concat(lb.id, "/inboundNatPools/", s.lb_nat_pool_name),
            )],
        )

        admin_password = pulumi.Output.secret(s.admin_password or "TempPassword123!")

        self.scale_set = self._declare(SCALE_SET, compute.VirtualMachineScaleSet(
            "vmss",
            resource_group_name=rg.name,
            vm_scale_set_name=s.node_type_name,
            location=rg.location,
            sku=compute.SkuArgs(name=s.vm_sku, tier=s.vm_tier, capacity=s.vm_capacity),
            overprovision=False,
            upgrade_policy=compute.UpgradePolicyArgs(mode="Automatic"),
            virtual_machine_profile=compute.VirtualMachineScaleSetVMProfileArgs(
                extension_profile=compute.VirtualMachineScaleSetExtensionProfileArgs(extensions=extensions),
                network_profile=compute.VirtualMachineScaleSetNetworkProfileArgs(
                    network_interface_configurations=[compute.VirtualMachineScaleSetNetworkConfigurationArgs(
                        name=f"NIC-{s.node_type_name}",
                        primary=True,
                        ip_configurations=[ip_config],
                    )],
                ),
                os_profile=compute.VirtualMachineScaleSetOSProfileArgs(
                    computer_name_prefix=s.node_type_name,
                    admin_username=s.admin_username,
                    admin_password=admin_password,
                    secrets=[compute.VaultSecretGroupArgs(
                        source_vault=compute.SubResourceArgs(id=s.certificate_source_vault_id),
                        vault_certificates=[compute.VaultCertificateArgs(
                            certificate_store=s.certificate_store,
                            certificate_url=s.certificate_url,
                        )],
                    )],
                ),
                storage_profile=compute.VirtualMachineScaleSetStorageProfileArgs(
                    image_reference=compute.ImageReferenceArgs(
                        publisher=s.image_publisher,
                        offer=s.image_offer,
                        sku=s.image_sku,
                        version=s.image_version,
                    ),
                    os_disk=compute.VirtualMachineScaleSetOSDiskArgs(
                        caching="ReadOnly",
                        create_option="FromImage",
                        managed_disk=compute.VirtualMachineScaleSetManagedDiskParametersArgs(
                            storage_account_type="Standard_LRS",
                        ),
                    ),
                ),
            ),
            tags=s.tags,
        ))
