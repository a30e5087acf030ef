# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

"""Client of the cartridge admin API (GraphQL over HTTP)

The admin API has no machine readable error codes. The few outcomes the
operator has to react on are recognized by phrases in the error text,
everything else is an opaque TRANSPORT error. Callers only look at
ClusterError.kind.
"""

import json
import re
from logging import Logger
from typing import Dict, List, Optional

import requests

from .. import consts, config
from ..errors import ClusterError, ErrorKind
from .cluster_api import TarantoolPod


JOIN_MUTATION = """mutation
    do_join_server(
        $uri: String!,
        $instance_uuid: String!,
        $replicaset_uuid: String!,
        $roles: [String!],
        $vshard_group: String!
    ) {
    joinInstanceResponse: join_server(
        uri: $uri,
        instance_uuid: $instance_uuid,
        replicaset_uuid: $replicaset_uuid,
        roles: $roles,
        timeout: 10,
        vshard_group: $vshard_group
    )
}"""

SET_WEIGHT_MUTATION = """mutation editReplicaset($uuid: String!, $weight: Float) {
    editReplicasetResponse: edit_replicaset(uuid: $uuid, weight: $weight)
}"""

GET_WEIGHT_QUERY = """query ($uuid: String!) {
    replicasets(uuid: $uuid) { weight }
}"""

SET_ROLES_MUTATION = """mutation editReplicaset($uuid: String!, $roles: [String!]) {
    editReplicasetResponse: edit_replicaset(uuid: $uuid, roles: $roles)
}"""

GET_ROLES_QUERY = """query ($uuid: String!) {
    replicasets(uuid: $uuid) { roles }
}"""

SERVER_STAT_QUERY = """query serverList {
    servers {
        uuid
        uri
        statistics {
            quota_size
            arena_used
            vshard_buckets_count
            quota_used_ratio
            arena_used_ratio
            items_used_ratio
        }
    }
}"""

FAILOVER_MUTATION = """mutation changeFailover($enabled: Boolean!) {
    cluster { failover(enabled: $enabled) }
}"""

# These two are sent as plain {"query": ...} documents without variables
EXPEL_MUTATION = "mutation {expel_instance: expel_server(uuid: %s)}"
BOOTSTRAP_MUTATION = "mutation bootstrap {bootstrapVshardResponse: bootstrap_vshard}"

# Phrases of cartridge error messages with a meaning for the operator
JOIN_ERRORS = {
    "already joined": ErrorKind.ALREADY_JOINED,
    "This instance isn't bootstrapped yet": ErrorKind.TOPOLOGY_DOWN,
}

BOOTSTRAP_ERRORS = {
    "already bootstrapped": ErrorKind.ALREADY_BOOTSTRAPPED,
}

MAX_WEIGHT = 2**32 - 1


def classify_error(message: str, phrases: Dict[str, ErrorKind]) -> ErrorKind:
    for phrase, kind in phrases.items():
        if phrase in message:
            return kind
    return ErrorKind.TRANSPORT


def parse_weight(weight: str) -> int:
    if not isinstance(weight, str) or not re.fullmatch(r"[0-9]+", weight):
        raise ClusterError(ErrorKind.INPUT,
                           f"replicaset weight {weight!r} is not a non-negative integer")
    value = int(weight)
    if value > MAX_WEIGHT:
        raise ClusterError(ErrorKind.INPUT,
                           f"replicaset weight {weight} is out of range")
    return value


def get_roles(labels: Dict[str, str], annotations: Dict[str, str]) -> List[str]:
    """
    Roles of a replicaset or instance.

    The annotation holds either a JSON string or a JSON array of strings and
    takes precedence over the label, which holds a dot separated list.
    """
    raw = annotations.get(consts.ROLES_TO_ASSIGN)
    if raw is None:
        from_label = labels.get(consts.ROLES_TO_ASSIGN)
        if from_label is None:
            raise ClusterError(ErrorKind.INPUT, "role undefined")
        return from_label.split(".")

    try:
        roles = json.loads(raw)
    except ValueError as e:
        raise ClusterError(ErrorKind.INPUT,
                           f"failed to parse roles from annotation {consts.ROLES_TO_ASSIGN}: {e}", e)

    if isinstance(roles, str):
        return [roles]
    if isinstance(roles, list) and all(isinstance(role, str) for role in roles):
        return roles

    raise ClusterError(ErrorKind.INPUT,
                       f"annotation {consts.ROLES_TO_ASSIGN} must be a string or a list of strings, got {raw}")


class TopologyConfig:
    def __init__(self, endpoint: str, cluster_id: str,
                 timeout: Optional[float] = None) -> None:
        self.endpoint = endpoint
        self.cluster_id = cluster_id
        self.timeout = config.topology_timeout if timeout is None else timeout

    @classmethod
    def for_leader(cls, leader: str, cluster_id: str) -> 'TopologyConfig':
        return cls(f"http://{leader}/admin/api", cluster_id)

    def __repr__(self) -> str:
        return f"<TopologyConfig endpoint={self.endpoint} cluster_id={self.cluster_id}>"


class InstanceDescriptor:
    """Everything join_server needs to know about an instance"""

    def __init__(self, uri: str, instance_uuid: str, replicaset_uuid: str,
                 roles: List[str], vshard_group: str = consts.DEFAULT_VSHARD_GROUP) -> None:
        self.uri = uri
        self.instance_uuid = instance_uuid
        self.replicaset_uuid = replicaset_uuid
        self.roles = roles
        self.vshard_group = vshard_group

    def __repr__(self) -> str:
        return (f"InstanceDescriptor: uri={self.uri} instance_uuid={self.instance_uuid} "
                f"replicaset_uuid={self.replicaset_uuid} roles={self.roles} vshard_group={self.vshard_group}")

    @classmethod
    def from_pod(cls, pod: TarantoolPod, cluster_id: str) -> 'InstanceDescriptor':
        # advertised through the headless service named after the cluster
        uri = f"{pod.name}.{cluster_id}.{pod.namespace}.svc.{pod.cluster_domain}:{consts.APP_PORT}"

        replicaset_uuid = pod.replicaset_uuid
        if not replicaset_uuid:
            raise ClusterError(ErrorKind.INPUT, f"{pod.name}: replicaset uuid empty")

        instance_uuid = pod.instance_uuid
        if not instance_uuid:
            raise ClusterError(ErrorKind.INPUT, f"{pod.name}: instance uuid empty")

        roles = get_roles(pod.labels, pod.annotations)

        vshard_group = consts.DEFAULT_VSHARD_GROUP
        if pod.labels.get(consts.LABEL_USE_VSHARD_GROUPS) == consts.FLAG_TRUE:
            vshard_group = pod.labels.get(consts.LABEL_VSHARD_GROUP_NAME, "")
            if not vshard_group:
                raise ClusterError(ErrorKind.INPUT,
                                   f"{pod.name}: {consts.LABEL_VSHARD_GROUP_NAME} undefined")

        return cls(uri, instance_uuid, replicaset_uuid, roles, vshard_group)


class ServerStatistics:
    quota_size: Optional[int] = None
    arena_used: Optional[int] = None
    buckets_count: Optional[int] = None
    quota_used_ratio: Optional[str] = None
    arena_used_ratio: Optional[str] = None
    items_used_ratio: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> 'ServerStatistics':
        stats = cls()
        stats.quota_size = data.get("quota_size")
        stats.arena_used = data.get("arena_used")
        stats.buckets_count = data.get("vshard_buckets_count")
        stats.quota_used_ratio = data.get("quota_used_ratio")
        stats.arena_used_ratio = data.get("arena_used_ratio")
        stats.items_used_ratio = data.get("items_used_ratio")
        return stats


class ServerStat:
    def __init__(self, uuid: str, uri: str,
                 statistics: Optional[ServerStatistics] = None) -> None:
        self.uuid = uuid
        self.uri = uri
        # unreachable servers report no statistics
        self.statistics = statistics

    def __repr__(self) -> str:
        return f"ServerStat: uuid={self.uuid} uri={self.uri} buckets={self.buckets_count}"

    @property
    def buckets_count(self) -> Optional[int]:
        if self.statistics is None:
            return None
        return self.statistics.buckets_count

    @classmethod
    def from_json(cls, data: dict) -> 'ServerStat':
        statistics = data.get("statistics")
        return cls(data.get("uuid", ""), data.get("uri", ""),
                   ServerStatistics.from_json(statistics) if statistics else None)


def _error_messages(body: dict) -> List[str]:
    messages = []
    for error in body.get("errors") or []:
        if isinstance(error, dict):
            messages.append(str(error.get("message", error)))
        else:
            messages.append(str(error))
    return messages


class TopologyClient:
    """
    Admin API of one cartridge cluster, bound to the topology leader.

    Every method performs exactly one HTTP round trip, bounded by the
    configured timeout.
    """

    def __init__(self, cfg: TopologyConfig, logger: Logger,
                 session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.logger = logger
        self.session = session or requests.Session()

    def __enter__(self) -> 'TopologyClient':
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    @property
    def endpoint(self) -> str:
        return self.cfg.endpoint

    def _post(self, payload: dict) -> dict:
        try:
            rsp = self.session.post(self.endpoint, json=payload,
                                    timeout=self.cfg.timeout)
        except requests.RequestException as e:
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"POST {self.endpoint} failed: {e}", e)

        try:
            body = rsp.json()
        except ValueError as e:
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"Invalid response from {self.endpoint} (HTTP {rsp.status_code}): {e}", e)

        if not isinstance(body, dict):
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"Invalid response from {self.endpoint}: {body!r}")

        if not rsp.ok and not body.get("errors"):
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"{self.endpoint} returned HTTP {rsp.status_code}")

        return body

    def _run(self, query: str, variables: Optional[dict] = None,
             phrases: Optional[Dict[str, ErrorKind]] = None) -> dict:
        body = self._post({"query": query, "variables": variables or {}})

        messages = _error_messages(body)
        if messages:
            raise ClusterError(classify_error(messages[0], phrases or {}),
                               messages[0])

        return body.get("data") or {}

    def join(self, instance: InstanceDescriptor) -> None:
        self.logger.info(f"Joining {instance}")

        data = self._run(JOIN_MUTATION, {
            "uri": instance.uri,
            "instance_uuid": instance.instance_uuid,
            "replicaset_uuid": instance.replicaset_uuid,
            "roles": instance.roles,
            "vshard_group": instance.vshard_group
        }, JOIN_ERRORS)

        if not data.get("joinInstanceResponse"):
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"join_server of {instance.uri} returned false without errors")

    def expel(self, instance_uuid: str) -> None:
        self.logger.info(f"Expelling instance {instance_uuid}")

        body = self._post({"query": EXPEL_MUTATION % json.dumps(instance_uuid)})
        if (body.get("data") or {}).get("expel_instance"):
            return

        messages = _error_messages(body)
        if messages:
            raise ClusterError(ErrorKind.TRANSPORT, messages[0])

        raise ClusterError(ErrorKind.TRANSPORT,
                           f"expel_server of {instance_uuid} returned false without errors")

    def set_weight(self, replicaset_uuid: str, weight: str) -> None:
        value = parse_weight(weight)

        self.logger.info(f"Setting replicaset weight uuid={replicaset_uuid} weight={value}")

        data = self._run(SET_WEIGHT_MUTATION, {"uuid": replicaset_uuid,
                                               "weight": value})
        if not data.get("editReplicasetResponse"):
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"edit_replicaset of {replicaset_uuid} returned false without errors")

    def get_weight(self, replicaset_uuid: str) -> Optional[int]:
        """Weight of the replicaset, None if it has no vshard-storage role"""
        self.logger.debug(f"Getting replicaset weight uuid={replicaset_uuid}")

        data = self._run(GET_WEIGHT_QUERY, {"uuid": replicaset_uuid})
        replicasets = data.get("replicasets") or []
        if not replicasets:
            raise ClusterError(ErrorKind.NOT_FOUND,
                               f"replicaset with uuid: '{replicaset_uuid}' not found")

        weight = replicasets[0].get("weight")
        if weight is None:
            return None
        return int(weight)

    def set_replicaset_roles(self, replicaset_uuid: str, roles: List[str]) -> None:
        self.logger.info(f"Setting replicaset roles uuid={replicaset_uuid} roles={roles}")

        data = self._run(SET_ROLES_MUTATION, {"uuid": replicaset_uuid,
                                              "roles": roles})
        if not data.get("editReplicasetResponse"):
            raise ClusterError(ErrorKind.TRANSPORT,
                               f"edit_replicaset of {replicaset_uuid} returned false without errors")

    def get_replicaset_roles(self, replicaset_uuid: str) -> List[str]:
        self.logger.debug(f"Getting replicaset roles uuid={replicaset_uuid}")

        data = self._run(GET_ROLES_QUERY, {"uuid": replicaset_uuid})
        replicasets = data.get("replicasets") or []
        if not replicasets:
            raise ClusterError(ErrorKind.NOT_FOUND,
                               f"replicaset with uuid: '{replicaset_uuid}' not found")

        return list(replicasets[0].get("roles") or [])

    def get_server_stat(self) -> List[ServerStat]:
        self.logger.debug("Fetching server stats")

        data = self._run(SERVER_STAT_QUERY)
        return [ServerStat.from_json(server) for server in data.get("servers") or []]

    def bootstrap_vshard(self) -> None:
        self.logger.info("Bootstrapping vshard")

        body = self._post({"query": BOOTSTRAP_MUTATION})
        if (body.get("data") or {}).get("bootstrapVshardResponse"):
            return

        messages = _error_messages(body)
        if messages:
            raise ClusterError(classify_error(messages[0], BOOTSTRAP_ERRORS),
                               messages[0])

        raise ClusterError(ErrorKind.TRANSPORT, "unknown error")

    def set_failover(self, enabled: bool) -> None:
        self.logger.info(f"Setting cluster failover enabled={enabled}")

        self._run(FAILOVER_MUTATION, {"enabled": enabled})
