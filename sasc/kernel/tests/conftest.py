"""
SASC kernel test configuration.

Kernel tests are synchronous and work on plain ResourceState values; no
store or event loop is involved.
"""

import pytest

from sasc.kernel.events import ResourceActions
from sasc.kernel.selectors import ResourceSelectors
from sasc.models.options import ResourceOptions


@pytest.fixture
def dog_options():
    return ResourceOptions(
        create=True,
        update=True,
        destroy=True,
        custom_actions={
            "run-iditarod": {"kind": "collection", "invalidation": True},
            "eat-biscuit": {"kind": "individual"},
        },
    )


@pytest.fixture
def dog_actions(dog_options):
    return ResourceActions("dogs", dog_options)


@pytest.fixture
def dog_selectors(dog_actions, dog_options):
    return ResourceSelectors("dogs", dog_actions, dog_options)
