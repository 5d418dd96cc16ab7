from __future__ import annotations
from typing import Dict, Any
import pulumi
from sfcluster.models import ClusterRequest
from .topology import ServiceFabricTopology

def build_pulumi_program(request: Dict[str, Any]):
    cluster = ClusterRequest.model_validate(request)

    def program():
        topology = ServiceFabricTopology(cluster.settings, version=cluster.version).build()
        for name, value in topology.outputs().items():
            pulumi.export(name, value)

    return program
