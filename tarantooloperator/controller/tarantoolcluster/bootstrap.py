# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from logging import Logger
from typing import List

from .. import consts
from ..errors import ClusterError, ErrorKind
from .cluster_api import ClusterStore, ReplicasetGroup, TarantoolCluster
from .topology import TopologyClient


class ClusterBootstrap:
    """
    One time, cluster wide actions: vshard bootstrap and enabling failover.
    Progress is recorded as flags on every replicaset.
    """

    def __init__(self, store: ClusterStore, topology: TopologyClient,
                 cluster: TarantoolCluster, logger: Logger) -> None:
        self.store = store
        self.topology = topology
        self.cluster = cluster
        self.logger = logger

    def bootstrap_vshard(self, groups: List[ReplicasetGroup]) -> None:
        pending = [group for group in groups if not group.bootstrapped]

        if pending:
            self.logger.info(f"Cluster is not bootstrapped, bootstrapping. pending={[g.name for g in pending]}")
            try:
                self.topology.bootstrap_vshard()
            except ClusterError as e:
                if e.kind != ErrorKind.ALREADY_BOOTSTRAPPED:
                    raise
                self.logger.info(f"vshard already bootstrapped: {e}")

            for group in pending:
                self.store.set_group_flag(group, consts.ANNOTATION_BOOTSTRAPPED)
                self.logger.info(f"Added bootstrapped annotation to {group.name}")
        elif groups:
            self.logger.debug("Cluster is already bootstrapped, not retrying")
        else:
            return

        if self.cluster.state != consts.CLUSTER_STATE_READY:
            self.store.set_cluster_state(self.cluster, consts.CLUSTER_STATE_READY)
            self.store.info(self.cluster, action="BootstrapVshard", reason="Ready",
                            message="vshard bootstrapped, cluster is ready")

    def enable_failover(self, groups: List[ReplicasetGroup]) -> None:
        pending = [group for group in groups if not group.failover_enabled]
        if not pending:
            self.logger.debug("Failover is enabled, not retrying")
            return

        self.topology.set_failover(True)
        self.logger.info("Enabled failover")

        for group in pending:
            self.store.set_group_flag(group, consts.ANNOTATION_FAILOVER_ENABLED)

        self.store.info(self.cluster, action="EnableFailover", reason="FailoverEnabled",
                        message="Cluster failover enabled")
