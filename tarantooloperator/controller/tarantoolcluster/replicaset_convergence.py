# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from logging import Logger
from typing import List, Optional

from .. import consts
from ..errors import ClusterError, ErrorKind
from .cluster_api import ClusterStore, ReplicasetGroup
from .stage import StageResult
from .topology import ServerStat, TopologyClient, get_roles


def replicaset_uuid_of(group: ReplicasetGroup) -> str:
    if not group.replicaset_uuid:
        raise ClusterError(ErrorKind.INPUT,
                           f"StatefulSet {group.name} has no {consts.LABEL_REPLICASET_UUID} label")
    return group.replicaset_uuid


def buckets_drained(group: ReplicasetGroup, stats: List[ServerStat]) -> bool:
    """
    True if every instance of the group is reported with zero buckets.
    Instances are matched by the pod name in the advertised uri, an instance
    missing from the stats or without statistics counts as not drained.
    """
    if not group.pods:
        return False

    buckets = {}
    for stat in stats:
        # "<pod>.<service>...:<port>" or "<pod>:<port>"
        host = stat.uri.split(":", 1)[0].split(".", 1)[0]
        buckets[host] = stat.buckets_count

    return all(buckets.get(pod.name) == 0 for pod in group.pods)


class ReplicasetConvergence:
    """Weight and role convergence, one replicaset at a time"""

    def __init__(self, store: ClusterStore, topology: TopologyClient,
                 logger: Logger) -> None:
        self.store = store
        self.topology = topology
        self.logger = logger
        self._server_stat: Optional[List[ServerStat]] = None

    def server_stat(self) -> List[ServerStat]:
        # fetched at most once per pass
        if self._server_stat is None:
            self._server_stat = self.topology.get_server_stat()
        return self._server_stat

    def converge_weight(self, group: ReplicasetGroup) -> StageResult:
        """
        A failure to read server stats doesn't stop weight 0 from being set,
        it is raised once the weight is applied.
        """
        if not group.all_joined:
            self.logger.info(f"Not all instances of {group.name} joined, skip weight change")
            return StageResult.PROGRESS

        weight = group.weight
        if weight is None:
            self.logger.debug(f"{group.name} declares no weight")
            return StageResult.CONVERGED

        stat_error: Optional[ClusterError] = None
        if weight == consts.WEIGHT_DRAIN and not group.scheduled_for_deletion:
            self.logger.info(f"Weight of {group.name} is 0, checking replicaset buckets for scheduled deletion")
            try:
                drained = buckets_drained(group, self.server_stat())
            except ClusterError as e:
                if not e.soft:
                    raise
                # weight 0 is still applied, the error is raised afterwards
                self.logger.error(f"Failed to get server stats for {group.name}: {e}")
                stat_error = e
                drained = False

            if drained:
                self.logger.info(f"{group.name} has migrated all of its buckets away, schedule to remove")
                self.store.set_group_flag(group, consts.ANNOTATION_SCHEDULED_DELETE)
                self.store.info(group, action="Drain", reason="ScheduledDelete",
                                message=f"Replicaset {group.name} holds no buckets and is scheduled for deletion")
            elif stat_error is None:
                self.logger.info(f"{group.name} still has buckets, retry checking on next run")

        self.topology.set_weight(replicaset_uuid_of(group), weight)

        if stat_error:
            raise stat_error
        return StageResult.CONVERGED

    def converge_roles(self, group: ReplicasetGroup) -> StageResult:
        replicaset_uuid = replicaset_uuid_of(group)

        actual = self.topology.get_replicaset_roles(replicaset_uuid)
        desired = get_roles(group.labels, group.annotations)

        if set(actual) == set(desired):
            return StageResult.CONVERGED

        self.logger.info(f"Updating replicaset roles of {group.name} id={replicaset_uuid} from={actual} to={desired}")
        self.topology.set_replicaset_roles(replicaset_uuid, desired)
        return StageResult.CONVERGED
