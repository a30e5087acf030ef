# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

from typing import Optional

from . import utils
from kubernetes import client

g_component = None
g_host = None


def post_event(api_core: client.CoreV1Api, namespace: str, object_ref: dict,
               type: str, action: str, reason: str, message: str) -> None:
    """Events carry at most 1024 characters of message"""
    body = {
        "metadata": {"namespace": namespace, "generateName": "tarantool-operator-"},
        "involvedObject": object_ref,
        "type": type,
        "action": action,
        "reason": reason,
        "message": message[:1024],
        "eventTime": utils.isotime(),
        "reportingComponent": f"tarantool.io/{g_component}",
        "reportingInstance": g_host,
        "source": {"component": g_component, "host": g_host},
    }
    api_core.create_namespaced_event(namespace, body)


class K8sInterfaceObject:
    """
    Base class for objects meant to interface with Kubernetes.
    """

    def __init__(self) -> None:
        pass

    @property
    def name(self) -> str:
        raise NotImplementedError()

    @property
    def namespace(self) -> str:
        raise NotImplementedError()

    def self_ref(self, field: Optional[str] = None) -> dict:
        raise NotImplementedError()
