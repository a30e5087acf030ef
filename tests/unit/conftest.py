# Copyright (c) 2024, Oracle and/or its affiliates.
#
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/
#

import logging

import pytest

from fakes import FakeStore, FakeTopology


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tarantooloperator.test")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def topology() -> FakeTopology:
    return FakeTopology()
