"""
SASC Kernel — Query Index Tests

Canonical keys, stored results and error flags.
"""

from sasc.kernel import index


class TestCanonicalKeys:
    def test_empty_filters_collapse(self):
        assert index.query_key({"filters": {}}) == index.query_key({})

    def test_key_order_does_not_matter(self):
        assert index.query_key({"a": 1, "b": 2}) == index.query_key({"b": 2, "a": 1})

    def test_empty_list_kept(self):
        assert index.query_key({"filters": {"ids": []}}) != index.query_key({})

    def test_nested_empty_mappings_removed(self):
        assert index.query_key({"filters": {"owner": {}}}) == index.query_key({})

    def test_idempotent(self):
        once = index.remove_empty_values({"filters": {"a": {"b": {}}, "c": [{}, 1]}})
        assert index.remove_empty_values(once) == once

    def test_mappings_inside_lists_are_cleaned(self):
        assert index.remove_empty_values({"x": [{"y": {}}]}) == {"x": [{}]}

    def test_none_query(self):
        assert index.query_key(None) == index.query_key({})


class TestResults:
    def test_unknown_query(self):
        assert not index.is_known({}, {})
        assert index.get_results({}, {}) is None

    def test_add_results_in_server_order(self):
        idx = index.add_query_results({}, {"filters": {"breed": "husky"}}, ["c", "a", "b"])
        assert index.is_known(idx, {"filters": {"breed": "husky"}})
        assert index.get_results(idx, {"filters": {"breed": "husky"}}) == ["c", "a", "b"]

    def test_duplicates_not_collapsed(self):
        idx = index.add_query_results({}, {}, ["a", "a"])
        assert index.get_results(idx, {}) == ["a", "a"]

    def test_ids_stored_as_strings(self):
        idx = index.add_query_results({}, {}, [1, 2])
        assert index.get_results(idx, {}) == ["1", "2"]

    def test_make_index_with_resources(self):
        idx = index.make_index([{"id": "1"}, {"id": "2"}])
        assert index.get_results(idx, {"filters": {}}) == ["1", "2"]

    def test_does_not_mutate_input(self):
        original = {}
        index.add_query_results(original, {}, ["1"])
        assert original == {}


class TestErrors:
    def test_success_then_failure(self):
        query = {"filters": {"breed": "husky"}}
        idx = index.add_query_results({}, query, ["a", "b", "c"])
        assert index.is_known(idx, query)
        assert index.get_results(idx, query) == ["a", "b", "c"]

        idx = index.set_error(idx, query)
        assert index.is_errored(idx, query)
        assert index.is_known(idx, query)
        assert index.get_results(idx, query) == ["a", "b", "c"]

    def test_failure_then_success_clears_error(self):
        idx = index.set_error({}, {})
        idx = index.add_query_results(idx, {}, ["x"])
        assert not index.is_errored(idx, {})
        assert index.get_results(idx, {}) == ["x"]

    def test_error_without_prior_results(self):
        idx = index.set_error({}, {})
        assert index.is_errored(idx, {})
        assert index.get_results(idx, {}) is None

    def test_created_at_preserved(self):
        idx = index.add_query_results({}, {}, ["1"])
        created = idx[index.query_key({})].created_at
        idx = index.set_error(idx, {})
        assert idx[index.query_key({})].created_at == created
