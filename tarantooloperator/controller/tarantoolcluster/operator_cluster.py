# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from logging import Logger

from kopf._cogs.structs.bodies import Body
import kopf

from .. import consts, config, kubeutils
from .cluster_api import ClusterStore, TarantoolCluster
from .cluster_controller import ClusterController


def make_store() -> ClusterStore:
    return ClusterStore(kubeutils.api_core, kubeutils.api_apps,
                        kubeutils.api_customobj, kubeutils.api_client)


# Reconciliation is periodic rather than event driven: the topology reached
# through the admin API changes without any Kubernetes event. kopf runs at
# most one handler per object at a time, so passes never overlap.
@kopf.timer(consts.GROUP, consts.VERSION, consts.CLUSTER_PLURAL,
            interval=config.RECONCILE_INTERVAL)  # type: ignore
def on_cluster_reconcile(name: str, namespace: str, body: Body,
                         logger: Logger, **kwargs) -> None:
    cluster = TarantoolCluster(body)

    if cluster.deleting:
        logger.debug(f"Cluster {namespace}/{name} is being deleted, skipping")
        return

    controller = ClusterController(cluster, make_store(), logger)
    result = controller.reconcile()

    if result.requeue:
        raise kopf.TemporaryError(result.message, delay=result.delay)
