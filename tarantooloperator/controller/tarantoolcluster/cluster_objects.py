# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from .. import consts
from .cluster_api import TarantoolCluster


def prepare_cluster_service(cluster: TarantoolCluster) -> dict:
    """Headless service giving every instance of the cluster a stable DNS
    name, instances advertise themselves as <pod>.<cluster>.<ns>.svc.<domain>
    """
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": cluster.name,
            "namespace": cluster.namespace,
        },
        "spec": {
            "selector": dict(cluster.match_labels),
            "clusterIP": "None",
            "ports": [
                {
                    "name": "app",
                    "port": consts.APP_PORT,
                    "protocol": "TCP"
                }
            ]
        }
    }
