"""
Version Registry for the Service Fabric topology

This module maps topology version numbers to the features each version
declares. Version 1 is the network baseline, version 2 adds the per-port
load balancer rules, the NAT pool and the scale set, and version 3 adds
the cluster resource and the diagnostics extension.
"""

from typing import Dict, List, NamedTuple

from sfcluster.errors import UnsupportedVersionError


class TopologyFeatures(NamedTuple):
    per_port_rules: bool
    nat_pool: bool
    scale_set: bool
    cluster_resource: bool
    diagnostics_extension: bool
    node_key_outputs: bool


class VersionRegistry:
    """Registry for topology versions"""

    LATEST = 3

    _versions: Dict[int, TopologyFeatures] = {
        1: TopologyFeatures(
            per_port_rules=False,
            nat_pool=False,
            scale_set=False,
            cluster_resource=False,
            diagnostics_extension=False,
            node_key_outputs=False,
        ),
        2: TopologyFeatures(
            per_port_rules=True,
            nat_pool=True,
            scale_set=True,
            cluster_resource=False,
            diagnostics_extension=False,
            node_key_outputs=True,
        ),
        3: TopologyFeatures(
            per_port_rules=True,
            nat_pool=True,
            scale_set=True,
            cluster_resource=True,
            diagnostics_extension=True,
            node_key_outputs=True,
        ),
    }

    @classmethod
    def get_features(cls, version: int) -> TopologyFeatures:
        """
        Get the feature set for a topology version.

        Args:
            version: The topology version (e.g., 3)

        Returns:
            The TopologyFeatures of that version

        Raises:
            UnsupportedVersionError: If the version is not registered
        """
        features = cls._versions.get(version)
        if features:
            return features
        else:
            supported = ", ".join(str(v) for v in cls._versions)
            raise UnsupportedVersionError(
                f"Unsupported topology version: {version}. "
                f"Supported versions: {supported}"
            )

    @classmethod
    def get_supported_versions(cls) -> List[int]:
        """Get list of all supported topology versions"""
        return list(cls._versions.keys())

    @classmethod
    def is_supported(cls, version: int) -> bool:
        """Check if a topology version is supported"""
        return version in cls._versions
