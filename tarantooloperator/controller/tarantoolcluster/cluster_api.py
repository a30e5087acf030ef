# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import typing
from typing import Optional, List, Dict, Callable, TypeVar, cast

from kopf._cogs.structs.bodies import Body
from kubernetes import client
from kubernetes.client.rest import ApiException
import kopf

from .. import consts, config
from ..errors import ClusterError, ErrorKind
from ..k8sobject import K8sInterfaceObject, post_event
from ..kubeutils import catch_404, selector_to_string

T = TypeVar("T")


class TarantoolCluster(K8sInterfaceObject):
    def __init__(self, cluster: typing.Union[Body, dict]) -> None:
        super().__init__()

        self.obj = cluster

    def __str__(self):
        return f"{self.namespace}/{self.name}"

    def __repr__(self):
        return f"<TarantoolCluster {self.name}>"

    @property
    def metadata(self) -> dict:
        return self.obj["metadata"]

    @property
    def annotations(self) -> dict:
        return self.metadata.get("annotations") or {}

    @property
    def spec(self) -> dict:
        return self.obj.get("spec") or {}

    @property
    def status(self) -> dict:
        return self.obj.get("status") or {}

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata["namespace"]

    @property
    def uid(self) -> str:
        return self.metadata["uid"]

    @property
    def resource_version(self) -> Optional[str]:
        return self.metadata.get("resourceVersion")

    @property
    def deleting(self) -> bool:
        return self.metadata.get("deletionTimestamp") is not None

    @property
    def selector(self) -> dict:
        return self.spec.get("selector") or {}

    @property
    def match_labels(self) -> Dict[str, str]:
        return self.selector.get("matchLabels") or {}

    @property
    def topology_leader(self) -> str:
        return self.annotations.get(consts.ANNOTATION_TOPOLOGY_LEADER, "")

    @property
    def state(self) -> Optional[str]:
        return self.status.get("state")

    def controls(self, obj: dict) -> bool:
        """Whether this cluster is the controller owner of the given object"""
        for ref in obj["metadata"].get("ownerReferences") or []:
            if ref.get("controller") and ref.get("uid") == self.uid:
                return True
        return False

    def self_ref(self, field_path: Optional[str] = None) -> dict:
        ref = {
            "apiVersion": consts.API_VERSION,
            "kind": consts.CLUSTER_KIND,
            "name": self.name,
            "namespace": self.namespace,
            "resourceVersion": self.resource_version,
            "uid": self.uid
        }
        if field_path:
            ref["fieldPath"] = field_path
        return ref


class ReplicasetGroup(K8sInterfaceObject):
    """
    A replicaset of the cartridge cluster, backed by a StatefulSet.
    """

    def __init__(self, sts: dict) -> None:
        super().__init__()

        self.obj = sts
        # Filled by the controller, in index order
        self.pods: List['TarantoolPod'] = []

    def __repr__(self):
        return f"<ReplicasetGroup {self.name}>"

    @property
    def metadata(self) -> dict:
        return self.obj["metadata"]

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.get("labels") or {}

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.get("annotations") or {}

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata["namespace"]

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    @property
    def resource_version(self) -> Optional[str]:
        return self.metadata.get("resourceVersion")

    @property
    def replicas(self) -> int:
        replicas = (self.obj.get("spec") or {}).get("replicas")
        # same default as the StatefulSet API
        return 1 if replicas is None else int(replicas)

    @property
    def service_name(self) -> str:
        return (self.obj.get("spec") or {}).get("serviceName", "")

    @property
    def replicaset_uuid(self) -> Optional[str]:
        return self.labels.get(consts.LABEL_REPLICASET_UUID)

    @property
    def weight(self) -> Optional[str]:
        return self.annotations.get(consts.ANNOTATION_REPLICASET_WEIGHT)

    @property
    def scheduled_for_deletion(self) -> bool:
        return self.annotations.get(consts.ANNOTATION_SCHEDULED_DELETE) == consts.FLAG_TRUE

    @property
    def bootstrapped(self) -> bool:
        return self.annotations.get(consts.ANNOTATION_BOOTSTRAPPED) == consts.FLAG_TRUE

    @property
    def failover_enabled(self) -> bool:
        return self.annotations.get(consts.ANNOTATION_FAILOVER_ENABLED) == consts.FLAG_TRUE

    @property
    def all_joined(self) -> bool:
        return all(pod.joined for pod in self.pods)

    def pod_name(self, index: int) -> str:
        return f"{self.name}-{index}"

    def self_ref(self, field_path: Optional[str] = None) -> dict:
        ref = {
            "apiVersion": "apps/v1",
            "kind": "StatefulSet",
            "name": self.name,
            "namespace": self.namespace,
            "resourceVersion": self.resource_version,
            "uid": self.uid
        }
        if field_path:
            ref["fieldPath"] = field_path
        return ref


class TarantoolPod(K8sInterfaceObject):
    def __init__(self, pod: dict) -> None:
        super().__init__()

        self.obj = pod

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<TarantoolPod {self.name}>"

    @property
    def metadata(self) -> dict:
        return self.obj["metadata"]

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.get("labels") or {}

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.get("annotations") or {}

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata["namespace"]

    @property
    def uid(self) -> Optional[str]:
        return self.metadata.get("uid")

    @property
    def resource_version(self) -> Optional[str]:
        return self.metadata.get("resourceVersion")

    @property
    def instance_uuid(self) -> Optional[str]:
        return self.labels.get(consts.LABEL_INSTANCE_UUID)

    @property
    def replicaset_uuid(self) -> Optional[str]:
        return self.labels.get(consts.LABEL_REPLICASET_UUID)

    @property
    def cluster_domain(self) -> str:
        return self.labels.get(consts.LABEL_CLUSTER_DOMAIN) or config.cluster_domain

    @property
    def joined(self) -> bool:
        return consts.ANNOTATION_JOINED in self.annotations

    def self_ref(self, field_path: Optional[str] = None) -> dict:
        ref = {
            "apiVersion": "v1",
            "kind": "Pod",
            "name": self.name,
            "namespace": self.namespace,
            "resourceVersion": self.resource_version,
            "uid": self.uid
        }
        if field_path:
            ref["fieldPath"] = field_path
        return ref


def metadata_patch(obj: dict, labels: Optional[dict] = None,
                   annotations: Optional[dict] = None) -> dict:
    """
    Merge patch for labels/annotations of obj. The resourceVersion makes the
    API server reject the patch if obj was modified in the meantime.
    """
    metadata: dict = {"resourceVersion": obj["metadata"].get("resourceVersion")}
    if labels:
        metadata["labels"] = labels
    if annotations:
        metadata["annotations"] = annotations
    return {"metadata": metadata}


class ClusterStore:
    """
    Access to the Kubernetes objects a reconciliation pass reads and writes.

    Every write is a merge patch guarded by the object's resourceVersion, a
    concurrent modification is reported as a ClusterError of kind CONFLICT.
    Wrapped objects are refreshed in place from the API response.
    """

    def __init__(self, api_core: client.CoreV1Api, api_apps: client.AppsV1Api,
                 api_customobj: client.CustomObjectsApi,
                 api_client: client.ApiClient) -> None:
        self.api_core = api_core
        self.api_apps = api_apps
        self.api_customobj = api_customobj
        self.api_client = api_client

    def _to_dict(self, obj) -> dict:
        return cast(dict, self.api_client.sanitize_for_serialization(obj))

    def _write(self, what: str, f: Callable[[], T]) -> T:
        try:
            return f()
        except ApiException as e:
            if e.status == 409:
                raise ClusterError(ErrorKind.CONFLICT,
                                   f"{what}: object was modified concurrently", e)
            raise

    # Roles

    def list_roles(self, cluster: TarantoolCluster) -> List[dict]:
        ret = self.api_customobj.list_namespaced_custom_object(
            consts.GROUP, consts.VERSION, cluster.namespace,
            consts.ROLE_PLURAL,
            label_selector=selector_to_string(cluster.selector))
        return list(ret.get("items", []))

    def adopt_role(self, cluster: TarantoolCluster, role: dict) -> dict:
        patch = metadata_patch(role, annotations={
            consts.ANNOTATION_CLUSTER_ID: cluster.name})
        # ownerReferences is replaced as a whole by a merge patch
        patch["metadata"]["ownerReferences"] = list(
            role["metadata"].get("ownerReferences") or [])
        kopf.append_owner_reference(patch, owner=cluster.obj)

        return self._write(
            f"Role {role['metadata']['name']}",
            lambda: self.api_customobj.patch_namespaced_custom_object(
                consts.GROUP, consts.VERSION, cluster.namespace,
                consts.ROLE_PLURAL, role["metadata"]["name"], body=patch))

    # Service

    def get_cluster_service(self, cluster: TarantoolCluster) -> Optional[client.V1Service]:
        return catch_404(lambda: self.api_core.read_namespaced_service(
            cluster.name, cluster.namespace))

    def create_cluster_service(self, cluster: TarantoolCluster, service: dict) -> None:
        kopf.adopt(service, owner=cluster.obj)
        self.api_core.create_namespaced_service(namespace=cluster.namespace,
                                                body=service)

    # StatefulSets and Pods

    def list_replicaset_groups(self, cluster: TarantoolCluster) -> List[ReplicasetGroup]:
        ret = self.api_apps.list_namespaced_stateful_set(
            cluster.namespace,
            label_selector=selector_to_string(cluster.selector))
        groups = [ReplicasetGroup(self._to_dict(sts)) for sts in ret.items]
        groups.sort(key=lambda group: group.name)
        return groups

    def get_pod(self, namespace: str, name: str) -> Optional[TarantoolPod]:
        pod = catch_404(lambda: self.api_core.read_namespaced_pod(name, namespace))
        if pod is None:
            return None
        return TarantoolPod(self._to_dict(pod))

    def set_instance_uuid(self, pod: TarantoolPod, instance_uuid: str) -> None:
        patch = metadata_patch(pod.obj, labels={
            consts.LABEL_INSTANCE_UUID: instance_uuid})
        ret = self._write(f"Pod {pod.name}",
                          lambda: self.api_core.patch_namespaced_pod(
                              pod.name, pod.namespace, body=patch))
        pod.obj = self._to_dict(ret)

    def mark_joined(self, pod: TarantoolPod) -> None:
        patch = metadata_patch(pod.obj, annotations={
            consts.ANNOTATION_JOINED: consts.FLAG_TRUE})
        ret = self._write(f"Pod {pod.name}",
                          lambda: self.api_core.patch_namespaced_pod(
                              pod.name, pod.namespace, body=patch))
        pod.obj = self._to_dict(ret)

    def set_group_flag(self, group: ReplicasetGroup, annotation: str) -> None:
        patch = metadata_patch(group.obj, annotations={
            annotation: consts.FLAG_TRUE})
        ret = self._write(f"StatefulSet {group.name}",
                          lambda: self.api_apps.patch_namespaced_stateful_set(
                              group.name, group.namespace, body=patch))
        group.obj = self._to_dict(ret)

    # Cluster

    def set_topology_leader(self, cluster: TarantoolCluster, address: str) -> None:
        patch = metadata_patch(cluster.obj, annotations={
            consts.ANNOTATION_TOPOLOGY_LEADER: address})
        cluster.obj = self._write(
            f"Cluster {cluster.name}",
            lambda: self.api_customobj.patch_namespaced_custom_object(
                consts.GROUP, consts.VERSION, cluster.namespace,
                consts.CLUSTER_PLURAL, cluster.name, body=patch))

    def set_cluster_state(self, cluster: TarantoolCluster, state: str) -> None:
        patch = {"status": {"state": state}}
        cluster.obj = self._write(
            f"Cluster {cluster.name} status",
            lambda: self.api_customobj.patch_namespaced_custom_object_status(
                consts.GROUP, consts.VERSION, cluster.namespace,
                consts.CLUSTER_PLURAL, cluster.name, body=patch))

    # ## Event Posting ##
    # Explicit events should only be used for high-level messages. Debugging or
    # low-level messages should go through the logging system.
    def info(self, obj: K8sInterfaceObject, *, action: str, reason: str,
             message: str) -> None:
        post_event(self.api_core, obj.namespace, obj.self_ref(), type="Normal",
                   action=action, reason=reason, message=message)
