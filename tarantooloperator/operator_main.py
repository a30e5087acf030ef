# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import asyncio
import logging
import os
import time

import kopf

from .controller import config as myconfig
from .controller import k8sobject, kubeutils
# registers the kopf handlers
from .controller import operator  # noqa: F401

PEERING_NAME = "tarantool-operator"


def setup() -> None:
    """Read the environment and prepare logging and the Kubernetes clients"""
    myconfig.config_from_env()

    kopf.configure(verbose=myconfig.debug >= 1)
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s - [%(levelname)s] [%(name)s] %(message)s",
                        datefmt="%Y-%m-%dT%H:%M:%S")

    k8sobject.g_component = "operator"
    k8sobject.g_host = os.getenv("HOSTNAME")

    kubeutils.configure()
    myconfig.cluster_domain = kubeutils.k8s_cluster_domain(logging.getLogger("tarantooloperator"))


def main(argv) -> int:
    setup()

    # the newest replica wins the peering
    asyncio.run(kopf.operator(clusterwide=True,
                              priority=int(time.time() * 1000000),
                              peering_name=PEERING_NAME))
    return 0
