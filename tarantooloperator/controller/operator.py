# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from pathlib import Path

from logging import Logger

from . import config, utils
import kopf
import logging


# These have to be imported so that kopf sees the annotations in those files
from .tarantoolcluster import operator_cluster


@kopf.on.startup()  # type: ignore
def on_startup(settings: kopf.OperatorSettings, logger: Logger, *args, **_):
    utils.log_banner(__file__, logger)
    config.log_config_banner(logger)

    # don't post logger.debug() calls as k8s events
    settings.posting.level = logging.INFO

    Path('/tmp/tarantool-operator-ready').touch()


@kopf.on.cleanup()  # type: ignore
def on_shutdown(logger: Logger, *args, **kwargs):
    logger.info("Tarantool Operator shutting down")
