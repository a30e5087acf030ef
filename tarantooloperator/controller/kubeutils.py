# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import os
import socket
import time
from logging import Logger

from typing import Callable, Optional, TypeVar
from kubernetes.client.rest import ApiException
from kubernetes import client, config

from . import config as myconfig

api_core: Optional[client.CoreV1Api] = None
api_apps: Optional[client.AppsV1Api] = None
api_customobj: Optional[client.CustomObjectsApi] = None
api_client: Optional[client.ApiClient] = None

T = TypeVar("T")


def configure() -> None:
    """Load the client configuration and create the API objects.

    Must be called once before any handler runs, API objects created before
    the configuration is loaded would talk to localhost.
    """
    global api_core, api_apps, api_customobj, api_client

    try:
        # outside k8s
        config.load_kube_config()
    except config.config_exception.ConfigException:
        try:
            # inside a k8s pod
            config.load_incluster_config()
        except config.config_exception.ConfigException:
            raise Exception(
                "Could not configure kubernetes python client")

    api_client = client.ApiClient()
    api_core = client.CoreV1Api(api_client)
    api_apps = client.AppsV1Api(api_client)
    api_customobj = client.CustomObjectsApi(api_client)


def catch_404(f: Callable[..., T]) -> Optional[T]:
    try:
        return f()
    except ApiException as e:
        if e.status == 404:
            return None
        raise


def selector_to_string(selector: Optional[dict]) -> str:
    """Render a metav1.LabelSelector as a label selector query string"""
    if not selector:
        return ""

    terms = [f"{k}={v}" for k, v in (selector.get("matchLabels") or {}).items()]

    for expr in selector.get("matchExpressions") or []:
        key = expr["key"]
        op = expr["operator"]
        values = ",".join(expr.get("values") or [])
        if op == "In":
            terms.append(f"{key} in ({values})")
        elif op == "NotIn":
            terms.append(f"{key} notin ({values})")
        elif op == "Exists":
            terms.append(key)
        elif op == "DoesNotExist":
            terms.append(f"!{key}")
        else:
            raise ValueError(f"Invalid label selector operator {op}")

    return ",".join(terms)


def _domain_of_service(ns: str) -> Optional[str]:
    # services resolve back to <service>.<namespace>.svc.<domain>
    for service in api_core.list_namespaced_service(ns).items:
        ip = service.spec.cluster_ip
        if not ip or ip == "None":
            continue

        parts = socket.gethostbyaddr(ip)[0].split(".", 3)
        if len(parts) == 4 and parts[2] == "svc":
            return parts[3]

    return None


def k8s_cluster_domain(logger: Optional[Logger], ns: str = "kube-system",
                       attempts: int = 3) -> str:
    """
    Domain used for instance addresses when a pod has no domain label.
    TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN takes precedence over detection.
    """
    domain = os.getenv("TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN")
    if domain:
        if logger:
            logger.info(f"Cluster domain from environment: {domain}")
        return domain

    for attempt in range(1, attempts + 1):
        try:
            domain = _domain_of_service(ns)
        except (ApiException, OSError) as e:
            if logger:
                logger.warning(f"Cluster domain detection failed attempt={attempt}: {e}")
            time.sleep(2)
            continue

        if domain:
            if logger:
                logger.info(f"Detected cluster domain: {domain}")
            return domain
        break

    if logger:
        logger.warning(f"Could not detect the cluster domain, using {myconfig.DEFAULT_CLUSTER_DOMAIN}. "
                       "Set TARANTOOL_OPERATOR_K8S_CLUSTER_DOMAIN if that is wrong.")
    return myconfig.DEFAULT_CLUSTER_DOMAIN
