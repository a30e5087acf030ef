# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from importlib import metadata
import os

debug = 0


# Constants
OPERATOR_VERSION = "1.0.0"

DEFAULT_CLUSTER_DOMAIN = "cluster.local"

# How often kopf runs a reconciliation pass for every Cluster, in seconds
RECONCILE_INTERVAL = float(os.getenv("TARANTOOL_OPERATOR_RECONCILE_INTERVAL", "5"))

# Delay before the next pass after partial progress or an error
requeue_delay: float = 5.0

# Per request timeout for the cartridge admin API, in seconds
topology_timeout: float = 5.0

# Overwritten at startup with the detected Kubernetes cluster domain
cluster_domain = DEFAULT_CLUSTER_DOMAIN


def log_config_banner(logger) -> None:
    logger.info(f"OPERATOR_VERSION   ={OPERATOR_VERSION}")
    logger.info(f"RECONCILE_INTERVAL ={RECONCILE_INTERVAL}")
    logger.info(f"REQUEUE_DELAY      ={requeue_delay}")
    logger.info(f"TOPOLOGY_TIMEOUT   ={topology_timeout}")
    logger.info(f"CLUSTER_DOMAIN     ={cluster_domain}")
    for dist in metadata.distributions():
        logger.info(f"{dist.metadata['Name']:20} = {dist.version:10}")


def config_from_env() -> None:
    global debug
    global requeue_delay
    global topology_timeout

    level = os.getenv("TARANTOOL_OPERATOR_DEBUG")
    if level:
        debug = int(level)

    delay = os.getenv("TARANTOOL_OPERATOR_REQUEUE_DELAY")
    if delay:
        requeue_delay = float(delay)

    timeout = os.getenv("TARANTOOL_OPERATOR_TOPOLOGY_TIMEOUT")
    if timeout:
        topology_timeout = float(timeout)
