"""Service Fabric cluster - Pulumi entry point for `pulumi up`."""

import pulumi

from sfcluster.models import ClusterSettings
from sfcluster.services.topology import ServiceFabricTopology
from sfcluster.services.version_registry import VersionRegistry

config = pulumi.Config("sfcluster")
version = config.get_int("version") or VersionRegistry.LATEST
settings = ClusterSettings(**(config.get_object("settings") or {}))

topology = ServiceFabricTopology(settings, version=version).build()

for name, value in topology.outputs().items():
    pulumi.export(name, value)
