# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

"""Selection of the topology leader

All admin API calls of a pass go to a single instance, the topology leader.
Its address is cached in an annotation of the Cluster. The leader is
always the first instance (index 0) of a non-empty replicaset, its address
follows the naming convention of the StatefulSet's headless service, thus
it can be re-synthesized and compared without probing the network.
"""

from typing import Iterator, List, Optional

from .. import consts
from .cluster_api import ReplicasetGroup


def make_instance_address(pod_name: str, service_name: str, namespace: str,
                          domain: str, port: int) -> str:
    return f"{pod_name}.{service_name}.{namespace}.svc.{domain}:{port}"


def _leader_candidates(groups: List[ReplicasetGroup]) -> Iterator[str]:
    for group in groups:
        if group.replicas == 0 or not group.pods:
            continue

        pod = group.pods[0]
        yield make_instance_address(pod.name, group.service_name,
                                    group.namespace, pod.cluster_domain,
                                    consts.ADMIN_PORT)


def select_topology_leader(groups: List[ReplicasetGroup]) -> Optional[str]:
    """
    Admin address of the first instance of the first non-empty replicaset,
    None if there's no instance in the cluster yet.
    """
    return next(_leader_candidates(groups), None)


def topology_leader_exists(groups: List[ReplicasetGroup], leader: str) -> bool:
    if not leader:
        return False
    return any(address == leader for address in _leader_candidates(groups))
