"""Tests for build_request: templating, headers, auth, body variants, hardening."""

import json

import pytest

from api_cli.core import build_request, resolve_scope
from api_cli.errors import ConfigurationError, TemplateRenderError
from tests.conftest import kv, make_collection, make_environment, make_request

# ── Method and URL ────────────────────────────────────────────────────────


class TestMethodAndUrl:
    def test_environment_overrides_collection_in_url(self):
        collection = make_collection(vars=kv(("env", "prod")))
        environment = make_environment(vars=kv(("env", "staging")))
        request = make_request(url="https://api.example.com/{{env}}")
        scope = resolve_scope(collection, request, environment=environment)
        prepared = build_request(collection, request, scope)
        assert prepared.url == "https://api.example.com/staging"

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"])
    def test_methods(self, method):
        prepared = build_request(make_collection(), make_request(method=method), {})
        assert prepared.method == method

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="Invalid HTTP method"):
            build_request(make_collection(), make_request(method="FETCH"), {})

    def test_lowercase_method_rejected(self):
        with pytest.raises(ConfigurationError):
            build_request(make_collection(), make_request(method="get"), {})

    @pytest.mark.parametrize("url", ["", "api.example.com/users", "http://"])
    def test_invalid_url(self, url):
        with pytest.raises(ConfigurationError, match="Invalid URL"):
            build_request(make_collection(), make_request(url=url), {})

    def test_undefined_variable(self):
        request = make_request(url="https://{{host}}/")
        with pytest.raises(TemplateRenderError):
            build_request(make_collection(), request, {})


# ── Query parameters ──────────────────────────────────────────────────────


class TestQueryParams:
    def test_active_params_in_order_with_duplicates(self):
        request = make_request(
            url="https://api.example.com/search",
            params={"query": kv(("q", "a"), ("q", "b"), ("skip", "1", False), ("page", "2"))},
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.url == "https://api.example.com/search?q=a&q=b&page=2"

    def test_values_sent_without_rendering(self):
        request = make_request(params={"query": kv(("q", "{{term}}"))})
        prepared = build_request(make_collection(), request, {"term": "x"})
        assert prepared.url.endswith("?q=%7B%7Bterm%7D%7D")


# ── Headers ───────────────────────────────────────────────────────────────


class TestHeaders:
    def test_collection_then_request(self):
        collection = make_collection(headers=kv(("X-Team", "core"), ("Accept", "text/plain")))
        request = make_request(headers=kv(("accept", "application/json")))
        prepared = build_request(collection, request, {})
        assert prepared.headers["X-Team"] == "core"
        assert prepared.headers["Accept"] == "application/json"

    def test_names_and_values_rendered(self):
        collection = make_collection(headers=kv(("X-{{name}}", "{{value}}")))
        prepared = build_request(collection, make_request(), {"name": "Trace", "value": "abc"})
        assert prepared.headers["X-Trace"] == "abc"

    def test_inactive_headers_skipped(self):
        collection = make_collection(headers=kv(("X-Off", "1", False)))
        request = make_request(headers=kv(("X-Also-Off", "1", False), ("X-On", "1")))
        prepared = build_request(collection, request, {})
        assert "X-Off" not in prepared.headers
        assert "X-Also-Off" not in prepared.headers
        assert prepared.headers["X-On"] == "1"

    def test_invalid_header_name(self):
        request = make_request(headers=kv(("Bad Header", "1")))
        with pytest.raises(ConfigurationError, match="Invalid header name"):
            build_request(make_collection(), request, {})

    def test_header_value_with_newline(self):
        request = make_request(headers=kv(("X-Value", "{{v}}")))
        with pytest.raises(ConfigurationError, match="Invalid value for header"):
            build_request(make_collection(), request, {"v": "a\r\nInjected: 1"})

    def test_header_value_not_latin1(self):
        request = make_request(headers=kv(("X-Value", "日本")))
        with pytest.raises(ConfigurationError):
            build_request(make_collection(), request, {})


# ── Auth ──────────────────────────────────────────────────────────────────


class TestAuth:
    def test_collection_auth_used_when_request_has_none(self):
        collection = make_collection(auth={"type": "bearer", "token": "{{token}}"})
        prepared = build_request(collection, make_request(), {"token": "abc"})
        assert prepared.headers["Authorization"] == "Bearer abc"

    def test_request_auth_replaces_collection_auth(self):
        collection = make_collection(auth={"type": "bearer", "token": "collection"})
        request = make_request(auth={"type": "basic", "username": "user", "password": "pass"})
        prepared = build_request(collection, request, {})
        assert prepared.headers["Authorization"] == "Basic dXNlcjpwYXNz"

    def test_request_none_auth_disables_collection_auth(self):
        collection = make_collection(auth={"type": "bearer", "token": "collection"})
        request = make_request(auth={"type": "none"})
        prepared = build_request(collection, request, {})
        assert "Authorization" not in prepared.headers

    def test_basic_auth_empty_password(self):
        request = make_request(auth={"type": "basic", "username": "{{user}}"})
        prepared = build_request(make_collection(), request, {"user": "user"})
        assert prepared.headers["Authorization"] == "Basic dXNlcjo="

    def test_auth_overrides_authorization_header(self):
        request = make_request(
            headers=kv(("Authorization", "manual")),
            auth={"type": "bearer", "token": "t"},
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.headers["Authorization"] == "Bearer t"

    def test_unknown_auth_type(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            make_request(auth={"type": "digest", "username": "u"})


# ── Body variants ─────────────────────────────────────────────────────────


class TestBody:
    def test_no_body(self):
        prepared = build_request(make_collection(), make_request(), {})
        assert prepared.body is None
        assert "Content-Type" not in prepared.headers

    def test_text(self):
        request = make_request(method="POST", body={"type": "text", "text": "hi {{name}}"})
        prepared = build_request(make_collection(), request, {"name": "bob"})
        assert prepared.body == b"hi bob"
        assert prepared.headers["Content-Type"] == "text/plain"

    def test_json_rendered_inside_strings(self):
        request = make_request(
            method="POST",
            body={"type": "json", "json": {"id": "{{id}}", "tags": ["{{tag}}"], "n": 1}},
        )
        prepared = build_request(make_collection(), request, {"id": "42", "tag": "new"})
        assert json.loads(prepared.body) == {"id": "42", "tags": ["new"], "n": 1}
        assert prepared.headers["Content-Type"] == "application/json"

    def test_json_broken_by_substitution(self):
        request = make_request(method="POST", body={"type": "json", "json": {"a": "{{v}}"}})
        with pytest.raises(ConfigurationError, match="JSON body"):
            build_request(make_collection(), request, {"v": 'x"y'})

    def test_graphql(self):
        request = make_request(
            method="POST",
            body={
                "type": "graphql",
                "graphql": {
                    "query": "query { user(id: {{id}}) { name } }",
                    "variables": {"{{key}}": "{{value}}", "static": "1"},
                },
            },
        )
        scope = {"id": "7", "key": "lang", "value": "en"}
        prepared = build_request(make_collection(), request, scope)
        assert json.loads(prepared.body) == {
            "query": "query { user(id: 7) { name } }",
            "variables": {"lang": "en", "static": "1"},
        }
        assert prepared.headers["Content-Type"] == "application/json"

    def test_graphql_variables_cannot_reference_each_other(self):
        request = make_request(
            method="POST",
            body={"type": "graphql", "graphql": {"query": "q", "variables": {"a": "1", "b": "{{a}}"}}},
        )
        with pytest.raises(TemplateRenderError):
            build_request(make_collection(), request, {})

    def test_graphql_null_variables(self):
        request = make_request(
            method="POST",
            body={"type": "graphql", "graphql": {"query": "q", "variables": None}},
        )
        prepared = build_request(make_collection(), request, {})
        assert json.loads(prepared.body) == {"query": "q", "variables": {}}

    def test_binary_rendered_then_decoded(self):
        request = make_request(method="POST", body={"type": "binary", "binary": "{{tok}}"})
        prepared = build_request(make_collection(), request, {"tok": "aGVsbG8="})
        assert prepared.body == b"hello"
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_binary_invalid_base64(self):
        request = make_request(method="POST", body={"type": "binary", "binary": "not base64!"})
        with pytest.raises(ConfigurationError, match="base64"):
            build_request(make_collection(), request, {})

    def test_form_only_active_fields(self):
        request = make_request(
            method="POST",
            body={"type": "form", "form": kv(("a", "1", True), ("b", "2", False))},
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.body == "a=1"
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded"

    def test_form_fields_rendered(self):
        request = make_request(
            method="POST",
            body={"type": "form", "form": kv(("{{k}}", "{{v}}"))},
        )
        prepared = build_request(make_collection(), request, {"k": "name", "v": "a b"})
        assert prepared.body == "name=a+b"

    @pytest.mark.parametrize(
        "body",
        [{"type": "text", "text": "x"}, {"type": "binary", "binary": "eA=="}],
    )
    def test_text_and_binary_content_type_replace_header(self, body):
        request = make_request(
            method="POST",
            headers=kv(("Content-Type", "application/xml")),
            body=body,
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.headers["Content-Type"] != "application/xml"

    def test_json_keeps_user_content_type(self):
        request = make_request(
            method="PATCH",
            headers=kv(("content-type", "application/merge-patch+json")),
            body={"type": "json", "json": {"name": "x"}},
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.headers["Content-Type"] == "application/merge-patch+json"
        assert json.loads(prepared.body) == {"name": "x"}

    def test_graphql_keeps_collection_content_type(self):
        collection = make_collection(headers=kv(("Content-Type", "application/graphql+json")))
        request = make_request(
            method="POST",
            body={"type": "graphql", "graphql": {"query": "q"}},
        )
        prepared = build_request(collection, request, {})
        assert prepared.headers["Content-Type"] == "application/graphql+json"

    def test_form_keeps_user_content_type(self):
        request = make_request(
            method="POST",
            headers=kv(("Content-Type", "application/x-www-form-urlencoded; charset=utf-8")),
            body={"type": "form", "form": kv(("a", "1"))},
        )
        prepared = build_request(make_collection(), request, {})
        assert prepared.headers["Content-Type"] == "application/x-www-form-urlencoded; charset=utf-8"
        assert prepared.body == "a=1"

    def test_unknown_body_type(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            make_request(body={"type": "xml", "xml": "<a/>"})
