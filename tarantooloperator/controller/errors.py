# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    # Soft outcomes, the operation is already satisfied or can't run yet
    ALREADY_JOINED = "AlreadyJoined"
    TOPOLOGY_DOWN = "TopologyDown"
    ALREADY_BOOTSTRAPPED = "AlreadyBootstrapped"

    # Object unknown to the topology service
    NOT_FOUND = "NotFound"

    # Network failures, undecodable responses, errors reported by the
    # topology service that we don't recognize and falsy results
    TRANSPORT = "Transport"

    # Declared data can't be used as is, must be fixed by an operator
    INPUT = "Input"

    # Optimistic concurrency failure writing to the Kubernetes API
    CONFLICT = "Conflict"


SOFT_KINDS = (ErrorKind.TRANSPORT, ErrorKind.INPUT, ErrorKind.NOT_FOUND)


class ClusterError(Exception):
    def __init__(self, kind: ErrorKind, msg: str, cause: Optional[BaseException] = None):
        super().__init__(msg)
        self.kind = kind
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    @property
    def message(self) -> str:
        """Error text as reported, without the kind"""
        return self.args[0]

    @property
    def soft(self) -> bool:
        return self.kind in SOFT_KINDS
