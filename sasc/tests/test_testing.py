"""
Tests for sasc/testing.py
"""

from __future__ import annotations

import pytest

from sasc.kernel import cache, index
from sasc.kernel.selectors import CacheMiss
from sasc.testing import build_resource_state, safe_select, trap_select


class TestBuildResourceState:
    def test_groups_by_type(self):
        state = build_resource_state(
            [
                {"id": "1", "type": "dogs", "name": "Spot"},
                {"id": "2", "type": "cats", "name": "Whiskers"},
                {"id": "3", "type": "dogs", "name": "Rex"},
            ]
        )
        assert set(state) == {"dogs", "cats"}
        assert cache.get_by_id(state["dogs"].cache, "3")["name"] == "Rex"
        assert index.get_results(state["dogs"].index, {}) == ["1", "3"]

    def test_default_sequences(self):
        state = build_resource_state([{"id": "1", "type": "dogs"}], {"dogs": ["1", "9"], "cats": []})
        assert index.get_results(state["dogs"].index, {}) == ["1", "9"]
        assert index.is_known(state["cats"].index, {})
        assert state["cats"].cache == {}

    @pytest.mark.parametrize("resource", [{"id": "1"}, {"type": "dogs"}, {"id": "", "type": "dogs"}])
    def test_rejects_incomplete_resources(self, resource):
        with pytest.raises(ValueError):
            build_resource_state([resource])


class TestSelectWrappers:
    @staticmethod
    def missing(state, *args):
        raise CacheMiss("missing", None, default=[])

    def test_trap_select_returns_miss(self):
        assert isinstance(trap_select(self.missing)({}), CacheMiss)

    def test_safe_select_returns_default(self):
        assert safe_select(self.missing)({}) == []

    def test_values_pass_through(self):
        assert safe_select(lambda state, x: x * 2)({}, 21) == 42
