# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import sys

if len(sys.argv) < 2 or sys.argv[1] != "operator":
    print(f"usage: python -m tarantooloperator operator, got {sys.argv[1:]}")
    sys.exit(1)

from .operator_main import main

sys.exit(main(sys.argv[2:]))
