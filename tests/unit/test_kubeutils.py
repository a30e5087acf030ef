# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from tarantooloperator.controller import kubeutils
from tarantooloperator.controller.kubeutils import catch_404, selector_to_string


def test_selector_match_labels() -> None:
    assert selector_to_string(None) == ""
    assert selector_to_string({}) == ""
    assert selector_to_string({"matchLabels": {"app": "kv", "tarantool.io/cluster-id": "kv"}}) == \
        "app=kv,tarantool.io/cluster-id=kv"


def test_selector_match_expressions() -> None:
    selector = {
        "matchLabels": {"app": "kv"},
        "matchExpressions": [
            {"key": "tier", "operator": "In", "values": ["storage", "router"]},
            {"key": "env", "operator": "NotIn", "values": ["dev"]},
            {"key": "tarantool.io/replicaset-uuid", "operator": "Exists"},
            {"key": "legacy", "operator": "DoesNotExist"},
        ]
    }

    assert selector_to_string(selector) == \
        "app=kv,tier in (storage,router),env notin (dev),tarantool.io/replicaset-uuid,!legacy"


def test_selector_invalid_operator() -> None:
    with pytest.raises(ValueError):
        selector_to_string({"matchExpressions": [{"key": "a", "operator": "Gt", "values": ["1"]}]})


def test_catch_404() -> None:
    def missing():
        raise ApiException(status=404)

    def broken():
        raise ApiException(status=403)

    assert catch_404(missing) is None
    assert catch_404(lambda: "found") == "found"
    with pytest.raises(ApiException):
        catch_404(broken)


def test_cluster_domain_from_env(monkeypatch) -> None:
    monkeypatch.setenv("TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN", "example.org")

    assert kubeutils.k8s_cluster_domain(None) == "example.org"


def services(*ips) -> MagicMock:
    api_core = MagicMock()
    api_core.list_namespaced_service.return_value = MagicMock(
        items=[SimpleNamespace(spec=SimpleNamespace(cluster_ip=ip)) for ip in ips])
    return api_core


def test_cluster_domain_detected(monkeypatch) -> None:
    monkeypatch.delenv("TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN", raising=False)
    monkeypatch.setattr(kubeutils, "api_core", services("None", "10.96.0.10"))
    monkeypatch.setattr(kubeutils.socket, "gethostbyaddr",
                        lambda ip: ("kube-dns.kube-system.svc.k8s.example.org", [], [ip]))

    assert kubeutils.k8s_cluster_domain(None) == "k8s.example.org"


def test_cluster_domain_fallback(monkeypatch) -> None:
    def unresolvable(ip):
        raise OSError("host not found")

    monkeypatch.delenv("TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN", raising=False)
    monkeypatch.setattr(kubeutils, "api_core", services("10.96.0.10"))
    monkeypatch.setattr(kubeutils.socket, "gethostbyaddr", unresolvable)
    monkeypatch.setattr(kubeutils.time, "sleep", lambda s: None)

    assert kubeutils.k8s_cluster_domain(None, attempts=2) == "cluster.local"
    assert kubeutils.api_core.list_namespaced_service.call_count == 2
