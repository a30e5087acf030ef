# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import logging
from unittest.mock import MagicMock

import kopf
import pytest

from tarantooloperator.controller.tarantoolcluster import operator_cluster
from tarantooloperator.controller.tarantoolcluster.stage import ReconcileResult

from fakes import CLUSTER, NAMESPACE, cluster_obj


@pytest.fixture
def controller(monkeypatch) -> MagicMock:
    controller = MagicMock()
    monkeypatch.setattr(operator_cluster, "ClusterController", controller)
    monkeypatch.setattr(operator_cluster, "make_store", MagicMock())
    return controller


def reconcile(body: dict) -> None:
    operator_cluster.on_cluster_reconcile(name=CLUSTER, namespace=NAMESPACE, body=body,
                                          logger=logging.getLogger("test"))


def test_converged(controller) -> None:
    controller.return_value.reconcile.return_value = ReconcileResult.done()

    reconcile(cluster_obj())

    controller.return_value.reconcile.assert_called_once()


def test_requeue(controller) -> None:
    controller.return_value.reconcile.return_value = ReconcileResult.retry(7, "Instance uuid assigned")

    with pytest.raises(kopf.TemporaryError) as e:
        reconcile(cluster_obj())
    assert e.value.delay == 7
    assert "Instance uuid assigned" in str(e.value)


def test_deleting_cluster_is_skipped(controller) -> None:
    body = cluster_obj()
    body["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"

    reconcile(body)

    controller.assert_not_called()
