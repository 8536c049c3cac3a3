from __future__ import annotations

import pytest

from shared import models


@pytest.fixture()
def sample_descriptor() -> models.ExperimentDescriptor:
    return models.build_descriptor()


@pytest.fixture()
def sample_protocol() -> models.Protocol:
    return models.build_protocol()
