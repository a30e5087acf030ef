# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from logging import Logger
from typing import Callable, List, Optional, TypeVar

from kubernetes.client.rest import ApiException

from .. import config
from ..errors import ClusterError
from . import cluster_objects
from .bootstrap import ClusterBootstrap
from .cluster_api import ClusterStore, ReplicasetGroup, TarantoolCluster
from .instance_lifecycle import InstanceLifecycle
from .replicaset_convergence import ReplicasetConvergence
from .stage import ReconcileResult, StageResult
from .topology import TopologyClient, TopologyConfig
from .topology_leader import select_topology_leader, topology_leader_exists

T = TypeVar("T")

TopologyFactory = Callable[[TopologyConfig, Logger], TopologyClient]


class ClusterController:
    """
    This is the controller for a Cluster object.

    A pass runs a fixed sequence of stages. Instance stages stop the pass
    after their first change, everything else converges all replicasets and
    keeps going past per-replicaset errors so that one stuck replicaset
    doesn't stall the others. Every unfinished or failed pass asks to be
    requeued, there is no permanent failure.
    """

    def __init__(self, cluster: TarantoolCluster, store: ClusterStore,
                 logger: Logger,
                 topology_factory: TopologyFactory = TopologyClient,
                 requeue_delay: Optional[float] = None) -> None:
        self.cluster = cluster
        self.store = store
        self.logger = logger
        self.topology_factory = topology_factory
        self.requeue_delay = config.requeue_delay if requeue_delay is None else requeue_delay

    def reconcile(self) -> ReconcileResult:
        self.logger.info(f"Reconciling cluster {self.cluster}")
        try:
            return self._reconcile()
        except ClusterError as e:
            self.logger.error(f"Reconcile of {self.cluster} failed: {e}")
            return ReconcileResult.failed(self.requeue_delay, e)
        except ApiException as e:
            self.logger.error(f"Reconcile of {self.cluster} failed: Kubernetes API error status={e.status} reason={e.reason}")
            return ReconcileResult.failed(self.requeue_delay, e)

    def _retry(self, message: str) -> ReconcileResult:
        self.logger.info(f"{message}, reconcile again in {self.requeue_delay}s")
        return ReconcileResult.retry(self.requeue_delay, message)

    def _reconcile(self) -> ReconcileResult:
        self.adopt_roles()
        self.logger.debug("Roles reconciled, moving to instances")

        self.ensure_cluster_service()

        groups = self.store.list_replicaset_groups(self.cluster)

        missing = self.load_instances(groups)
        if missing:
            return self._retry(f"Pod {missing} not found")

        leader = self.ensure_topology_leader(groups)
        if not leader:
            return self._retry("No topology leader available")

        cfg = TopologyConfig.for_leader(leader, self.cluster.name)
        with self.topology_factory(cfg, self.logger) as topology:
            return self.converge(groups, topology)

    def adopt_roles(self) -> None:
        for role in self.store.list_roles(self.cluster):
            name = role["metadata"]["name"]
            if self.cluster.controls(role):
                self.logger.debug(f"Role {name} already owned")
                continue

            self.store.adopt_role(self.cluster, role)
            self.logger.info(f"Set role ownership Role.Name={name} Cluster.Name={self.cluster.name}")

    def ensure_cluster_service(self) -> None:
        if self.store.get_cluster_service(self.cluster) is not None:
            return

        service = cluster_objects.prepare_cluster_service(self.cluster)
        self.logger.info(f"Creating Service {service['metadata']['name']}")
        self.store.create_cluster_service(self.cluster, service)

    def load_instances(self, groups: List[ReplicasetGroup]) -> Optional[str]:
        """Read the pods of every group, returns the name of a missing pod"""
        for group in groups:
            pods = []
            for index in range(group.replicas):
                name = group.pod_name(index)
                pod = self.store.get_pod(group.namespace, name)
                if pod is None:
                    return name
                pods.append(pod)
            group.pods = pods

        return None

    def ensure_topology_leader(self, groups: List[ReplicasetGroup]) -> Optional[str]:
        leader = self.cluster.topology_leader
        if topology_leader_exists(groups, leader):
            return leader

        new_leader = select_topology_leader(groups)
        if not new_leader:
            self.logger.info(f"Select topology leader failed, keeping leader={leader or None}")
            return None

        self.logger.info(f"Select new topology leader addr={new_leader} (was {leader or None})")
        self.store.set_topology_leader(self.cluster, new_leader)
        self.store.info(self.cluster, action="SelectTopologyLeader", reason="LeaderChanged",
                        message=f"Topology leader is {new_leader}")
        return new_leader

    def _soft(self, errors: List[ClusterError], what: str,
              f: Callable[[], T]) -> Optional[T]:
        try:
            return f()
        except ClusterError as e:
            if not e.soft:
                raise
            self.logger.error(f"{what}: {e}")
            errors.append(e)
            return None

    def converge(self, groups: List[ReplicasetGroup],
                 topology: TopologyClient) -> ReconcileResult:
        lifecycle = InstanceLifecycle(self.store, topology, self.cluster.name, self.logger)

        if lifecycle.assign_instance_uuids(groups) == StageResult.PROGRESS:
            return self._retry("Instance uuid assigned")

        if lifecycle.join_instances(groups) == StageResult.PROGRESS:
            return self._retry("Instance join attempted")

        errors: List[ClusterError] = []
        unfinished = False

        replicasets = ReplicasetConvergence(self.store, topology, self.logger)
        for group in groups:
            result = self._soft(errors, f"Weight of {group.name}",
                                lambda: replicasets.converge_weight(group))
            if result == StageResult.PROGRESS:
                unfinished = True

        for group in groups:
            self._soft(errors, f"Roles of {group.name}",
                       lambda: replicasets.converge_roles(group))

        bootstrap = ClusterBootstrap(self.store, topology, self.cluster, self.logger)
        bootstrap.bootstrap_vshard(groups)
        self._soft(errors, "Failover", lambda: bootstrap.enable_failover(groups))

        if errors:
            return ReconcileResult.failed(self.requeue_delay, errors[0],
                                          "; ".join(e.message for e in errors))
        if unfinished:
            return self._retry("Not all replicasets converged")

        self.logger.info(f"Cluster {self.cluster} converged")
        return ReconcileResult.done()
