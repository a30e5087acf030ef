# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import datetime
import os
import uuid

# Fixed namespace for name based instance UUIDs, shared with instances
# created by earlier operator releases
INSTANCE_UUID_NAMESPACE = uuid.UUID("73692FF6-EB42-46C2-92B6-65C45191368D")


def instance_uuid(name: str) -> str:
    """Stable UUID of an instance, derived from its pod name"""
    return str(uuid.uuid5(INSTANCE_UUID_NAMESPACE, name))


def isotime() -> str:
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0, tzinfo=None).isoformat()+"Z"


def log_banner(path: str, logger) -> None:
    from importlib import metadata
    from . import config

    kopf_version = metadata.version('kopf')
    ts = datetime.datetime.fromtimestamp(os.stat(path).st_mtime).isoformat()

    path = os.path.basename(path)
    logger.info(
        f"Tarantool Operator/{path}={config.OPERATOR_VERSION} timestamp={ts} kopf={kopf_version} uid={os.getuid()}")
