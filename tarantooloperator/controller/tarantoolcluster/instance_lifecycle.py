# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from logging import Logger
from typing import List

from .. import utils
from ..errors import ClusterError, ErrorKind
from .cluster_api import ClusterStore, ReplicasetGroup
from .stage import StageResult
from .topology import InstanceDescriptor, TopologyClient


class InstanceLifecycle:
    """
    Drives instances through unassigned -> uuid assigned -> joined.

    Each call changes (or tries to change) at most one instance and then
    reports PROGRESS, so a failure is always attributable to one object.
    Instances are visited in replicaset order, then index order.
    """

    def __init__(self, store: ClusterStore, topology: TopologyClient,
                 cluster_id: str, logger: Logger) -> None:
        self.store = store
        self.topology = topology
        self.cluster_id = cluster_id
        self.logger = logger

    def assign_instance_uuids(self, groups: List[ReplicasetGroup]) -> StageResult:
        for group in groups:
            for pod in group.pods:
                if pod.instance_uuid:
                    continue

                value = utils.instance_uuid(pod.name)
                self.logger.info(f"Setting instance uuid of {pod.name} to {value}")
                self.store.set_instance_uuid(pod, value)
                return StageResult.PROGRESS

        return StageResult.CONVERGED

    def join_instances(self, groups: List[ReplicasetGroup]) -> StageResult:
        for group in groups:
            for pod in group.pods:
                if pod.joined:
                    continue

                instance = InstanceDescriptor.from_pod(pod, self.cluster_id)
                try:
                    self.topology.join(instance)
                except ClusterError as e:
                    if e.kind == ErrorKind.ALREADY_JOINED:
                        self.logger.info(f"{pod.name} already joined")
                    elif e.kind == ErrorKind.TOPOLOGY_DOWN:
                        self.logger.info(f"Topology is down, can't join {pod.name} yet: {e}")
                        return StageResult.PROGRESS
                    else:
                        raise
                else:
                    self.logger.info(f"{pod.name} joined replicaset {instance.replicaset_uuid}")

                self.store.mark_joined(pod)
                return StageResult.PROGRESS

        return StageResult.CONVERGED
