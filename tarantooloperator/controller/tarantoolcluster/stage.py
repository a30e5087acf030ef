# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import enum
from typing import Optional

from ..errors import ClusterError


class StageResult(enum.Enum):
    # Nothing left to do for this stage, continue with the next one
    CONVERGED = "CONVERGED"

    # Something was changed or attempted, stop the pass and come back later
    PROGRESS = "PROGRESS"


class ReconcileResult:
    def __init__(self, requeue: bool, delay: Optional[float] = None,
                 message: str = "", error: Optional[Exception] = None) -> None:
        self.requeue = requeue
        self.delay = delay
        self.message = message
        self.error = error

    def __repr__(self) -> str:
        return f"ReconcileResult: requeue={self.requeue} delay={self.delay} message={self.message} error={self.error}"

    @classmethod
    def done(cls) -> 'ReconcileResult':
        return cls(False)

    @classmethod
    def retry(cls, delay: float, message: str) -> 'ReconcileResult':
        return cls(True, delay, message)

    @classmethod
    def failed(cls, delay: float, error: Exception,
               message: Optional[str] = None) -> 'ReconcileResult':
        if message is None:
            # cartridge errors are passed on verbatim
            message = error.message if isinstance(error, ClusterError) else str(error)
        return cls(True, delay, message, error)
