# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import uuid

from tarantooloperator.controller import config, utils
from tarantooloperator.controller.errors import ClusterError, ErrorKind
from tarantooloperator.controller.tarantoolcluster.stage import ReconcileResult


def test_instance_uuid_is_stable() -> None:
    value = utils.instance_uuid("storage-0-0")

    assert value == utils.instance_uuid("storage-0-0")
    assert value != utils.instance_uuid("storage-0-1")
    assert value == str(uuid.uuid5(uuid.UUID("73692ff6-eb42-46c2-92b6-65c45191368d"), "storage-0-0"))
    assert uuid.UUID(value).version == 5


def test_isotime() -> None:
    assert utils.isotime().endswith("Z")


def test_cluster_error() -> None:
    cause = ValueError("boom")
    e = ClusterError(ErrorKind.TRANSPORT, "request failed", cause)

    assert str(e) == "Transport: request failed"
    assert e.cause is cause
    assert e.soft
    assert not ClusterError(ErrorKind.CONFLICT, "modified").soft
    assert not ClusterError(ErrorKind.ALREADY_JOINED, "already joined").soft


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setattr(config, "requeue_delay", config.requeue_delay)
    monkeypatch.setattr(config, "topology_timeout", config.topology_timeout)
    monkeypatch.setattr(config, "debug", config.debug)
    monkeypatch.setenv("TARANTOOL_OPERATOR_REQUEUE_DELAY", "10")
    monkeypatch.setenv("TARANTOOL_OPERATOR_TOPOLOGY_TIMEOUT", "2.5")
    monkeypatch.setenv("TARANTOOL_OPERATOR_DEBUG", "1")

    config.config_from_env()

    assert config.requeue_delay == 10.0
    assert config.topology_timeout == 2.5
    assert config.debug == 1


def test_failed_result_message() -> None:
    e = ClusterError(ErrorKind.TRANSPORT, "Sharding config is empty")

    assert e.message == "Sharding config is empty"
    assert ReconcileResult.failed(5, e).message == "Sharding config is empty"
    assert ReconcileResult.failed(5, e, "two errors").message == "two errors"
    assert ReconcileResult.failed(5, ValueError("boom")).message == "boom"
    assert ReconcileResult.failed(5, e).error is e
