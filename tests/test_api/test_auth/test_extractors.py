"""
Tests for credential extraction order.
"""

from src.api.auth.extractors import (
    build_extractors,
    extract_credential,
    from_authorization,
    header_extractor,
    query_extractor,
)


class TestAuthorizationHeader:
    """`Authorization: ApiKey <key>` parsing."""

    def test_apikey_scheme(self, make_request):
        request = make_request(headers={"Authorization": "ApiKey abc123"})
        assert from_authorization(request) == "abc123"

    def test_value_is_trimmed(self, make_request):
        request = make_request(headers={"Authorization": "ApiKey   abc123  "})
        assert from_authorization(request) == "abc123"

    def test_other_scheme_ignored(self, make_request):
        request = make_request(headers={"Authorization": "Bearer abc123"})
        assert from_authorization(request) is None

    def test_scheme_is_case_sensitive(self, make_request):
        request = make_request(headers={"Authorization": "apikey abc123"})
        assert from_authorization(request) is None

    def test_scheme_without_value_is_present_but_empty(self, make_request):
        request = make_request(headers={"Authorization": "ApiKey   "})
        assert from_authorization(request) == ""

    def test_absent(self, make_request):
        assert from_authorization(make_request()) is None


class TestNamedHeader:
    def test_default_header(self, make_request):
        request = make_request(headers={"x-api-key": " abc123 "})
        assert header_extractor()(request) == "abc123"

    def test_header_lookup_is_case_insensitive(self, make_request):
        request = make_request(headers={"X-API-KEY": "abc123"})
        assert header_extractor("x-api-key")(request) == "abc123"

    def test_custom_header(self, make_request):
        request = make_request(headers={"x-store-key": "abc123", "x-api-key": "other"})
        assert header_extractor("x-store-key")(request) == "abc123"

    def test_absent(self, make_request):
        assert header_extractor()(make_request()) is None


class TestQueryParameter:
    def test_default_param(self, make_request):
        request = make_request(query={"api_key": "abc123"})
        assert query_extractor()(request) == "abc123"

    def test_empty_param_is_absent(self, make_request):
        request = make_request(query={"api_key": ""})
        assert query_extractor()(request) is None


class TestPriority:
    """First present source wins."""

    def test_authorization_beats_named_header(self, make_request):
        request = make_request(
            headers={"Authorization": "ApiKey first", "x-api-key": "second"}
        )
        assert extract_credential(request, build_extractors()) == "first"

    def test_named_header_used_when_authorization_has_other_scheme(self, make_request):
        request = make_request(
            headers={"Authorization": "Bearer token", "x-api-key": "second"}
        )
        assert extract_credential(request, build_extractors()) == "second"

    def test_named_header_beats_query(self, make_request):
        request = make_request(headers={"x-api-key": "header"}, query={"api_key": "query"})
        extractors = build_extractors(allow_query_param=True)
        assert extract_credential(request, extractors) == "header"

    def test_query_ignored_unless_enabled(self, make_request):
        request = make_request(query={"api_key": "abc123"})
        assert extract_credential(request, build_extractors()) is None

    def test_query_used_when_enabled(self, make_request):
        request = make_request(query={"api_key": "abc123"})
        extractors = build_extractors(allow_query_param=True)
        assert extract_credential(request, extractors) == "abc123"

    def test_empty_authorization_value_stops_the_search(self, make_request):
        request = make_request(headers={"Authorization": "ApiKey ", "x-api-key": "abc123"})
        assert extract_credential(request, build_extractors()) == ""

    def test_extractor_order(self):
        extractors = build_extractors(header_name="x-store-key", allow_query_param=True)
        assert len(extractors) == 3
        assert extractors[0] is from_authorization
        assert extractors[1].__name__ == "from_header[x-store-key]"
        assert extractors[2].__name__ == "from_query[api_key]"
