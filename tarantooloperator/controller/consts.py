# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

GROUP = "tarantool.io"
VERSION = "v1alpha1"
API_VERSION = GROUP+"/"+VERSION

CLUSTER_KIND = "Cluster"
CLUSTER_PLURAL = "clusters"

ROLE_KIND = "Role"
ROLE_PLURAL = "roles"

# Labels
LABEL_INSTANCE_UUID = "tarantool.io/instance-uuid"
LABEL_REPLICASET_UUID = "tarantool.io/replicaset-uuid"
LABEL_CLUSTER_DOMAIN = "tarantool.io/cluster-domain-name"
LABEL_USE_VSHARD_GROUPS = "tarantool.io/useVshardGroups"
LABEL_VSHARD_GROUP_NAME = "tarantool.io/vshardGroupName"

# Either an annotation (JSON) or a label (dot separated list)
ROLES_TO_ASSIGN = "tarantool.io/rolesToAssign"

# Annotations
ANNOTATION_CLUSTER_ID = "tarantool.io/cluster-id"
ANNOTATION_TOPOLOGY_LEADER = "tarantool.io/topology-leader"
ANNOTATION_JOINED = "tarantool.io/joined"
ANNOTATION_REPLICASET_WEIGHT = "tarantool.io/replicaset-weight"
ANNOTATION_SCHEDULED_DELETE = "tarantool.io/scheduledDelete"
ANNOTATION_BOOTSTRAPPED = "tarantool.io/isBootstrapped"
ANNOTATION_FAILOVER_ENABLED = "tarantool.io/failoverEnabled"

FLAG_TRUE = "1"
WEIGHT_DRAIN = "0"

CLUSTER_STATE_READY = "Ready"

APP_PORT = 3301
ADMIN_PORT = 8081

DEFAULT_VSHARD_GROUP = "default"
