from spec_reconciler.parser.base import CanonicalEndpoint
from spec_reconciler.reconcile.matcher import (
    current_endpoints,
    endpoint_key,
    match_endpoints,
    merge_endpoint_sets,
)


def _endpoint(method: str, path: str, **kwargs) -> CanonicalEndpoint:
    return CanonicalEndpoint(method=method, path=path, **kwargs)


class TestEndpointKey:
    def test_method_case_insensitive(self):
        assert endpoint_key(_endpoint("get", "/pets")) == endpoint_key(_endpoint("GET", "/pets"))

    def test_path_case_sensitive(self):
        assert endpoint_key(_endpoint("GET", "/Pets")) != endpoint_key(_endpoint("GET", "/pets"))

    def test_template_names_distinct_by_default(self):
        assert endpoint_key(_endpoint("GET", "/users/{id}")) != endpoint_key(_endpoint("GET", "/users/{userId}"))

    def test_normalize_templates(self):
        a = endpoint_key(_endpoint("GET", "/users/{id}/posts/{postId}"), normalize_templates=True)
        b = endpoint_key(_endpoint("GET", "/users/{userId}/posts/{pid}"), normalize_templates=True)
        assert a == b == ("GET", "/users/{}/posts/{}")


class TestMatchEndpoints:
    def test_partition(self):
        existing = [_endpoint("GET", "/users", id=1), _endpoint("GET", "/users/{id}", id=2)]
        incoming = [_endpoint("GET", "/users"), _endpoint("POST", "/users")]
        result = match_endpoints(existing, incoming)

        assert [(p.existing.id, p.incoming.method) for p in result.duplicates] == [(1, "GET")]
        assert [e.key for e in result.new_endpoints] == [("POST", "/users")]
        assert [e.id for e in result.deprecated_candidates] == [2]

    def test_empty_existing_means_all_new(self):
        incoming = [_endpoint("GET", "/a"), _endpoint("POST", "/b")]
        result = match_endpoints([], incoming)
        assert result.duplicates == []
        assert result.deprecated_candidates == []
        assert [e.key for e in result.new_endpoints] == [("GET", "/a"), ("POST", "/b")]

    def test_every_incoming_classified_once(self):
        existing = [_endpoint("GET", "/a", id=1), _endpoint("GET", "/b", id=2)]
        incoming = [_endpoint("GET", "/b"), _endpoint("PUT", "/c"), _endpoint("get", "/a")]
        result = match_endpoints(existing, incoming)
        assert len(result.duplicates) + len(result.new_endpoints) == len(incoming)
        assert result.deprecated_candidates == []

    def test_incoming_order_preserved(self):
        existing = [_endpoint("GET", "/a", id=1), _endpoint("GET", "/b", id=2)]
        incoming = [_endpoint("GET", "/b"), _endpoint("GET", "/a")]
        result = match_endpoints(existing, incoming)
        assert [p.existing.id for p in result.duplicates] == [2, 1]

    def test_repeated_incoming_key_classified_per_copy(self):
        existing = [_endpoint("GET", "/a", id=1)]
        incoming = [
            _endpoint("GET", "/a", name="first"),
            _endpoint("GET", "/a", name="second"),
            _endpoint("POST", "/b", name="third"),
            _endpoint("POST", "/b", name="fourth"),
        ]
        result = match_endpoints(existing, incoming)
        assert [(p.existing.id, p.incoming.name) for p in result.duplicates] == [(1, "first"), (1, "second")]
        assert [e.name for e in result.new_endpoints] == ["third", "fourth"]

    def test_normalized_match(self):
        existing = [_endpoint("GET", "/users/{id}", id=1)]
        incoming = [_endpoint("GET", "/users/{userId}")]
        assert match_endpoints(existing, incoming).new_endpoints != []
        assert len(match_endpoints(existing, incoming, normalize_templates=True).duplicates) == 1


class TestCurrentEndpoints:
    def test_superseded_row_passed_over(self):
        old = _endpoint("GET", "/a", id=5, deprecated=False)
        new = _endpoint("GET", "/a", id=3, previous_endpoint_id=5)
        assert current_endpoints([old, new])[("GET", "/a")].id == 3

    def test_non_deprecated_preferred(self):
        rows = [_endpoint("GET", "/a", id=1), _endpoint("GET", "/a", id=2, deprecated=True)]
        assert current_endpoints(rows)[("GET", "/a")].id == 1

    def test_highest_id_breaks_ties(self):
        rows = [_endpoint("GET", "/a", id=1), _endpoint("GET", "/a", id=4)]
        assert current_endpoints(rows)[("GET", "/a")].id == 4

    def test_superseded_rows_never_deprecation_candidates(self):
        rows = [_endpoint("GET", "/a", id=1, deprecated=True), _endpoint("GET", "/a", id=2, previous_endpoint_id=1)]
        result = match_endpoints(rows, [_endpoint("GET", "/a")])
        assert result.duplicates[0].existing.id == 2
        assert result.deprecated_candidates == []


class TestMergeEndpointSets:
    def test_first_occurrence_wins(self):
        first = [_endpoint("GET", "/a", name="from first"), _endpoint("POST", "/a")]
        second = [_endpoint("get", "/a", name="from second"), _endpoint("DELETE", "/a")]
        merged = merge_endpoint_sets([first, second])
        assert [e.key for e in merged] == [("GET", "/a"), ("POST", "/a"), ("DELETE", "/a")]
        assert merged[0].name == "from first"
