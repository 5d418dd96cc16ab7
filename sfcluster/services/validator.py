"""
Validation service for cluster requests
Checks for common issues that would cause deployment failures
"""

from typing import Dict, Any
import ipaddress
import re

from sfcluster.models import ClusterRequest
from .dependency_plan import plan_for, check_plan
from .version_registry import VersionRegistry


class PayloadValidator:
    """Validates cluster requests and returns warnings/errors"""

    # Common storage account names that are likely taken
    COMMON_STORAGE_NAMES = [
        "test", "storage", "mystorage", "teststorage", "stor", "data",
        "files", "blob", "container", "backup", "archive", "logs", "diag"
    ]

    # Ports the cluster itself needs reachable through the load balancer
    GATEWAY_PORTS = (19000, 19080)

    @staticmethod
    def validate(request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a cluster request and return warnings/errors

        Returns:
            {
                "valid": bool,
                "errors": List[str],
                "warnings": List[str],
                "suggestions": List[str]
            }
        """
        errors = []
        warnings = []
        suggestions = []

        cluster = ClusterRequest.model_validate(request)
        s = cluster.settings

        # Version
        if not VersionRegistry.is_supported(cluster.version):
            supported = ", ".join(str(v) for v in VersionRegistry.get_supported_versions())
            errors.append(
                f"Topology version {cluster.version} is not supported. Supported versions: {supported}"
            )
        else:
            for problem in check_plan(plan_for(cluster.version)):
                errors.append(f"Declaration order problem: {problem}")

        # Storage accounts
        for role, storage_name in (
            ("log", s.log_storage_account),
            ("diagnostics", s.diagnostics_storage_account),
        ):
            storage_name_lower = storage_name.lower()

            if len(storage_name_lower) < 8:
                warnings.append(
                    f"Storage account '{storage_name}' ({role}) is very short. "
                    f"Short names are more likely to be taken globally. "
                    f"Consider using a longer, more unique name."
                )
                suggestions.append(
                    f"Try: '{storage_name}{s.cluster_name}' or add random suffix"
                )

            if storage_name_lower in PayloadValidator.COMMON_STORAGE_NAMES:
                warnings.append(
                    f"Storage account '{storage_name}' ({role}) uses a very common name. "
                    f"This name is likely already taken globally. "
                    f"Storage account names must be globally unique across all Azure."
                )

            if not re.match(r'^[a-z0-9]+$', storage_name):
                errors.append(
                    f"Storage account '{storage_name}' ({role}) contains invalid characters. "
                    f"Storage account names must be 3-24 characters, lowercase letters and numbers only."
                )

            if len(storage_name_lower) > 24:
                errors.append(
                    f"Storage account '{storage_name}' ({role}) is too long ({len(storage_name_lower)} chars). "
                    f"Maximum length is 24 characters."
                )

            if len(storage_name_lower) < 3:
                errors.append(
                    f"Storage account '{storage_name}' ({role}) is too short ({len(storage_name_lower)} chars). "
                    f"Minimum length is 3 characters."
                )

        if s.log_storage_account.lower() == s.diagnostics_storage_account.lower():
            errors.append(
                f"Log and diagnostics storage accounts share the name '{s.log_storage_account}'. "
                f"They must be two distinct accounts."
            )

        # Load balancer ports
        ports = list(s.lb_ports)
        duplicates = sorted({p for p in ports if ports.count(p) > 1})
        if duplicates:
            errors.append(
                f"Duplicate load balancer ports: {', '.join(str(p) for p in duplicates)}. "
                f"Each port gets exactly one probe and one rule."
            )
        for port in ports:
            if not 0 < port < 65536:
                errors.append(f"Load balancer port {port} is outside 1-65535.")
        for port in PayloadValidator.GATEWAY_PORTS:
            if port not in ports:
                warnings.append(
                    f"Port {port} is not load balanced. Clients will not reach the cluster gateway."
                )

        # NAT pool
        if s.nat_frontend_port_start > s.nat_frontend_port_end:
            errors.append(
                f"NAT pool range {s.nat_frontend_port_start}-{s.nat_frontend_port_end} is empty."
            )
        elif s.nat_frontend_port_end - s.nat_frontend_port_start + 1 < s.vm_capacity:
            warnings.append(
                f"NAT pool range {s.nat_frontend_port_start}-{s.nat_frontend_port_end} has fewer ports "
                f"than the scale set capacity ({s.vm_capacity})."
            )

        # Network
        try:
            vnet = ipaddress.ip_network(s.vnet_address_space)
            subnet = ipaddress.ip_network(s.subnet_prefix)
            if subnet.version != vnet.version:
                errors.append(
                    f"Subnet {s.subnet_prefix} is IPv{subnet.version} but the virtual network address space "
                    f"{s.vnet_address_space} is IPv{vnet.version}."
                )
            elif not subnet.subnet_of(vnet):
                errors.append(
                    f"Subnet {s.subnet_prefix} is not inside the virtual network address space {s.vnet_address_space}."
                )
        except ValueError as e:
            errors.append(f"Invalid network prefix: {e}")

        # Node type
        if s.vm_capacity < 5:
            warnings.append(
                f"Primary node type '{s.node_type_name}' has {s.vm_capacity} nodes. "
                f"Service Fabric recommends at least 5 nodes for the primary node type."
            )
        if not s.admin_password:
            warnings.append(
                "No admin password configured (SF_ADMIN_PASSWORD). A temporary password will be used."
            )

        return {
            "valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
            "suggestions": suggestions
        }
