# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import pytest

from tarantooloperator.controller import consts
from tarantooloperator.controller.errors import ClusterError, ErrorKind
from tarantooloperator.controller.tarantoolcluster.bootstrap import ClusterBootstrap

from fakes import make_cluster, make_group

BOOTSTRAPPED = (consts.ANNOTATION_BOOTSTRAPPED,)


@pytest.fixture
def cluster():
    return make_cluster()


@pytest.fixture
def bootstrap(store, topology, cluster, logger) -> ClusterBootstrap:
    return ClusterBootstrap(store, topology, cluster, logger)


def test_bootstrap(bootstrap, store, topology, cluster) -> None:
    groups = [make_group("router"), make_group("storage")]

    bootstrap.bootstrap_vshard(groups)

    assert topology.calls == [("bootstrap_vshard",)]
    assert all(group.bootstrapped for group in groups)
    assert cluster.state == consts.CLUSTER_STATE_READY
    assert store.writes("set_cluster_state") == [("set_cluster_state", "Ready")]


def test_already_bootstrapped_is_absorbed(bootstrap, store, topology, cluster) -> None:
    topology.errors["bootstrap_vshard"] = ClusterError(ErrorKind.ALREADY_BOOTSTRAPPED,
                                                       "Sharding config is already bootstrapped")
    groups = [make_group("router", flags=BOOTSTRAPPED), make_group("storage")]

    bootstrap.bootstrap_vshard(groups)

    assert store.writes("set_group_flag") == [("set_group_flag", "storage", consts.ANNOTATION_BOOTSTRAPPED)]
    assert all(group.bootstrapped for group in groups)
    assert cluster.state == consts.CLUSTER_STATE_READY


def test_bootstrap_error_marks_nothing(bootstrap, store, topology, cluster) -> None:
    topology.errors["bootstrap_vshard"] = ClusterError(ErrorKind.TRANSPORT, "Sharding config is empty")
    groups = [make_group("router")]

    with pytest.raises(ClusterError):
        bootstrap.bootstrap_vshard(groups)

    assert store.writes() == []
    assert cluster.state is None


def test_bootstrapped_cluster_is_not_retried(store, topology, logger) -> None:
    cluster = make_cluster(state=consts.CLUSTER_STATE_READY)
    groups = [make_group("router", flags=BOOTSTRAPPED), make_group("storage", flags=BOOTSTRAPPED)]

    ClusterBootstrap(store, topology, cluster, logger).bootstrap_vshard(groups)

    assert topology.calls == []
    assert store.writes() == []


def test_missing_ready_state_is_repaired(bootstrap, store, topology, cluster) -> None:
    groups = [make_group("router", flags=BOOTSTRAPPED)]

    bootstrap.bootstrap_vshard(groups)

    assert topology.calls == []
    assert store.writes() == [("set_cluster_state", "Ready")]


def test_no_groups(bootstrap, store, topology) -> None:
    bootstrap.bootstrap_vshard([])

    assert topology.calls == []
    assert store.writes() == []


def test_enable_failover(bootstrap, store, topology) -> None:
    groups = [make_group("router", flags=(consts.ANNOTATION_FAILOVER_ENABLED,)),
              make_group("storage")]

    bootstrap.enable_failover(groups)

    assert topology.calls == [("set_failover", True)]
    assert store.writes() == [("set_group_flag", "storage", consts.ANNOTATION_FAILOVER_ENABLED)]
    assert all(group.failover_enabled for group in groups)

    bootstrap.enable_failover(groups)
    assert len(topology.calls) == 1


def test_failover_error_marks_nothing(bootstrap, store, topology) -> None:
    topology.errors["set_failover"] = ClusterError(ErrorKind.TRANSPORT, "timeout")
    groups = [make_group("router")]

    with pytest.raises(ClusterError):
        bootstrap.enable_failover(groups)

    assert not groups[0].failover_enabled
    assert store.writes() == []
