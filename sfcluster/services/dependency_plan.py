"""
Declaration plan for the Service Fabric topology.

The plan lists, for one topology version, every resource (and storage key
lookup) in declaration order together with the declarations whose outputs
it consumes. The topology builder checks each declaration against it, so
the declaration order is always a valid topological order.
"""

from __future__ import annotations
from typing import Dict, Iterable, List

from sfcluster.errors import ForwardReferenceError
from sfcluster.models import Declaration
from .version_registry import VersionRegistry

RESOURCE_GROUP = "resourceGroup"
STORAGE_LOG = "saLog"
STORAGE_APP_DX = "saAppDx"
VNET = "vnet"
SUBNET = "subnet"
PUBLIC_IP = "pubip4sf"
PRIMARY_STORAGE_KEY = "PrimaryStorageKey"
KEY1 = "Key1"
KEY2 = "Key2"
LOAD_BALANCER = "lb"
CLUSTER = "sfCluster"
SCALE_SET = "vmss"


def plan_for(version: int) -> List[Declaration]:
    features = VersionRegistry.get_features(version)

    plan = [
        Declaration(key=RESOURCE_GROUP, kind="azure.resourcegroup"),
        Declaration(key=STORAGE_LOG, kind="azure.storage", depends_on=[RESOURCE_GROUP]),
        Declaration(key=STORAGE_APP_DX, kind="azure.storage", depends_on=[RESOURCE_GROUP]),
        Declaration(key=VNET, kind="azure.vnet", depends_on=[RESOURCE_GROUP]),
        Declaration(key=SUBNET, kind="azure.subnet", depends_on=[RESOURCE_GROUP, VNET]),
        Declaration(key=PUBLIC_IP, kind="azure.publicip", depends_on=[RESOURCE_GROUP]),
        Declaration(
            key=PRIMARY_STORAGE_KEY,
            kind="lookup.storagekey",
            depends_on=[RESOURCE_GROUP, STORAGE_APP_DX],
        ),
    ]
    if features.node_key_outputs:
        plan += [
            Declaration(key=KEY1, kind="lookup.storagekey", depends_on=[RESOURCE_GROUP, STORAGE_LOG]),
            Declaration(key=KEY2, kind="lookup.storagekey", depends_on=[RESOURCE_GROUP, STORAGE_LOG]),
        ]

    plan.append(
        Declaration(key=LOAD_BALANCER, kind="azure.loadbalancer", depends_on=[RESOURCE_GROUP, PUBLIC_IP])
    )

    if features.cluster_resource:
        plan.append(
            Declaration(
                key=CLUSTER,
                kind="azure.servicefabric",
                depends_on=[RESOURCE_GROUP, STORAGE_LOG, PUBLIC_IP],
            )
        )

    if features.scale_set:
        deps = [RESOURCE_GROUP, SUBNET, LOAD_BALANCER, KEY1, KEY2]
        if features.cluster_resource:
            deps.append(CLUSTER)
        if features.diagnostics_extension:
            deps += [STORAGE_APP_DX, PRIMARY_STORAGE_KEY]
        plan.append(Declaration(key=SCALE_SET, kind="azure.vmss", depends_on=deps))

    return plan


def check_plan(plan: Iterable[Declaration]) -> List[str]:
    """Return one message per forward reference or duplicate key; empty when the order is valid."""
    plan = list(plan)
    problems = []
    seen = set()
    known = {d.key for d in plan}
    for decl in plan:
        if decl.key in seen:
            problems.append(f"'{decl.key}' is declared more than once")
        for dep in decl.depends_on:
            if dep not in known:
                problems.append(f"'{decl.key}' depends on unknown declaration '{dep}'")
            elif dep not in seen:
                problems.append(f"'{decl.key}' depends on '{dep}', which is declared after it")
        seen.add(decl.key)
    return problems


def waves(plan: Iterable[Declaration]) -> List[List[str]]:
    """
    Group declarations into waves that could be provisioned concurrently.

    A declaration lands in the first wave after all of its dependencies.
    """
    level: Dict[str, int] = {}
    grouped: List[List[str]] = []
    for decl in plan:
        missing = [d for d in decl.depends_on if d not in level]
        if missing:
            raise ForwardReferenceError(decl.key, missing)
        n = max((level[d] + 1 for d in decl.depends_on), default=0)
        level[decl.key] = n
        if n == len(grouped):
            grouped.append([])
        grouped[n].append(decl.key)
    return grouped


class DeclarationLedger:
    """Tracks what the builder has declared so far against a plan."""

    def __init__(self, plan: List[Declaration]):
        self._plan = {d.key: d for d in plan}
        self._declared: Dict[str, object] = {}

    def declare(self, key: str, value):
        decl = self._plan.get(key)
        if decl is None:
            raise ForwardReferenceError(key, [f"{key} (not in plan)"])
        missing = [d for d in decl.depends_on if d not in self._declared]
        if missing:
            raise ForwardReferenceError(key, missing)
        self._declared[key] = value
        return value

    def order(self) -> List[str]:
        return list(self._declared.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._declared

    def __getitem__(self, key: str):
        return self._declared[key]
