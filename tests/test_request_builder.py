"""
Tests for RequestBuilder configuration.
"""
import json
from datetime import timedelta

import pytest

import retrieve
from retrieve import (
    BodyEncodingError,
    BytesBody,
    ConfigurationError,
    Context,
    Errored,
    JsonBody,
    Open,
    RetrieveError,
    TextBody,
)
from retrieve.core.request import RequestBuilder, is_valid_method, is_valid_url


def test_request_builder():
    b = (
        retrieve.new("https://example.com/api")
        .set_method("POST")
        .set_header("Authorization", "Bearer token")
        .set_query_param("q", "search")
        .set_json({"foo": "bar"})
        .set_timeout(10.0)
    )

    assert b.url == "https://example.com/api?q=search"
    assert b.method == "POST"
    assert b.headers["Authorization"] == "Bearer token"
    assert b.headers["Content-Type"] == "application/json"
    assert json.loads(b.get_body()) == {"foo": "bar"}
    assert b.timeout == 10.0


class TestDefaults:
    def test_new_builder(self):
        """Should start with the documented defaults."""
        b = retrieve.new("http://example.com")
        assert isinstance(b, RequestBuilder)
        assert b.url == "http://example.com"
        assert b.method == "GET"
        assert b.headers == {}
        assert b.get_body() == ""
        assert b.timeout == 10.0
        assert b.output == "./"
        assert b.is_ignore_status_code is False
        assert b.context is Context.background()
        assert isinstance(b.state, Open)
        assert b.error is None

    def test_no_url_validation_on_construction(self):
        """Should accept any string as a URL until exec()."""
        b = retrieve.new("not a url")
        assert b.url == "not a url"
        assert b.error is None


class TestSetters:
    def test_set_method(self):
        """Should store the method verbatim."""
        b = retrieve.new("http://example.com").set_method("post")
        assert b.method == "post"

    def test_set_method_invalid_is_not_rejected_early(self):
        """Should defer method validation to exec()."""
        b = retrieve.new("http://example.com").set_method("DELETE")
        assert b.method == "DELETE"
        assert b.error is None

    def test_set_header(self):
        b = retrieve.new("http://example.com").set_header("Content-Type", "application/json")
        assert b.headers["Content-Type"] == "application/json"

    def test_set_header_overwrites(self):
        """Should keep the latest value for the same key."""
        b = retrieve.new("http://example.com").set_header("Accept", "text/plain").set_header("Accept", "*/*")
        assert b.headers == {"Accept": "*/*"}

    def test_set_headers(self):
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        b = retrieve.new("http://example.com").set_headers(headers)
        assert b.headers == headers

    def test_set_headers_merges(self):
        """Should upsert into the existing headers."""
        b = (
            retrieve.new("http://example.com")
            .set_header("Accept", "text/plain")
            .set_header("X-Trace", "1")
            .set_headers({"Accept": "application/json"})
        )
        assert b.headers == {"Accept": "application/json", "X-Trace": "1"}

    def test_headers_accessor_returns_copy(self):
        """Should not let callers mutate the builder through the accessor."""
        b = retrieve.new("http://example.com").set_header("Accept", "*/*")
        headers = b.headers
        headers["Accept"] = "changed"
        headers["Injected"] = "yes"
        assert b.headers == {"Accept": "*/*"}

    def test_set_timeout(self):
        b = retrieve.new("http://example.com").set_timeout(5.0)
        assert b.timeout == 5.0

    def test_set_timeout_timedelta(self):
        """Should accept a timedelta and expose seconds."""
        b = retrieve.new("http://example.com").set_timeout(timedelta(milliseconds=1500))
        assert b.timeout == 1.5

    def test_set_context(self):
        ctx, cancel = Context.background().with_cancel()
        b = retrieve.new("http://example.com").set_context(ctx)
        assert b.context is ctx
        cancel()

    def test_set_output(self, tmp_path):
        b = retrieve.new("http://example.com").set_output(tmp_path / "out.bin")
        assert b.output == str(tmp_path / "out.bin")

    def test_ignore_status_code(self):
        b = retrieve.new("http://example.com").ignore_status_code()
        assert b.is_ignore_status_code is True


class TestBody:
    def test_set_body_json(self):
        """Should encode arbitrary values as JSON and force the content type."""
        data = {"key": "value"}
        b = retrieve.new("http://example.com").set_body(data)

        assert b.get_body() == '{"key":"value"}'
        assert b.headers["Content-Type"] == "application/json"

    def test_set_body_json_overwrites_content_type(self):
        b = (
            retrieve.new("http://example.com")
            .set_header("Content-Type", "text/plain")
            .set_body([1, 2, 3])
        )
        assert b.headers["Content-Type"] == "application/json"
        assert b.get_body() == "[1,2,3]"

    def test_json_body_replaces_content_type_in_any_case(self):
        """Should leave a single Content-Type header whatever casing the caller used."""
        b = (
            retrieve.new("http://example.com")
            .set_header("content-type", "text/plain")
            .set_headers({"CONTENT-TYPE": "text/csv"})
            .set_json({"a": 1})
        )
        assert b.headers == {"Content-Type": "application/json"}

    def test_set_body_string(self):
        """Should use strings verbatim and leave headers alone."""
        b = retrieve.new("http://example.com").set_body("hello world")
        assert b.get_body() == "hello world"
        assert b.headers == {}

    def test_set_body_bytes(self):
        b = retrieve.new("http://example.com").set_header("Content-Type", "application/octet-stream")
        b.set_body(b"\x00raw")
        assert b.get_body() == "\x00raw"
        assert b.headers == {"Content-Type": "application/octet-stream"}

    def test_explicit_variants(self):
        """Should accept the tagged body variants directly."""
        assert retrieve.new("http://x").set_body(TextBody('{"a": 1}')).headers == {}
        assert retrieve.new("http://x").set_body(BytesBody(b"abc")).get_body() == "abc"
        # A JSON-encoded string is quoted
        b = retrieve.new("http://x").set_body(JsonBody("text"))
        assert b.get_body() == '"text"'
        assert b.headers["Content-Type"] == "application/json"

    def test_explicit_setters(self):
        assert retrieve.new("http://x").set_text("t").get_body() == "t"
        assert retrieve.new("http://x").set_bytes(bytearray(b"b")).get_body() == "b"
        assert retrieve.new("http://x").set_json(None).get_body() == "null"

    def test_last_body_wins(self):
        b = retrieve.new("http://example.com").set_body({"a": 1}).set_body("second")
        assert b.get_body() == "second"

    def test_get_body_drains(self):
        """Should yield an empty string on the second read."""
        b = retrieve.new("http://example.com").set_body("once")
        assert b.get_body() == "once"
        assert b.get_body() == ""

    def test_unserializable_body_raises(self):
        """Should raise a BodyEncodingError instead of recording an error."""
        b = retrieve.new("http://example.com")
        with pytest.raises(BodyEncodingError) as exc:
            b.set_body(object())

        assert not isinstance(exc.value, RetrieveError)
        assert isinstance(exc.value, TypeError)
        assert b.error is None
        assert b.get_body() == ""
        assert "Content-Type" not in b.headers

    def test_nan_body_raises(self):
        with pytest.raises(BodyEncodingError):
            retrieve.new("http://example.com").set_json({"value": float("nan")})


class TestQueryParams:
    def test_set_query_param(self):
        b = retrieve.new("http://example.com").set_query_param("key", "value")
        url = b.build_url()
        assert "?key=value" in url

    def test_set_query_param_twice(self):
        """Should keep exactly one occurrence with the latest value."""
        b = (
            retrieve.new("http://example.com")
            .set_query_param("key", "first")
            .set_query_param("key", "second")
        )
        url = b.build_url()
        assert url.count("key=") == 1
        assert "key=second" in url

    def test_set_query_params_sorted(self):
        """Should encode keys in sorted order."""
        b = retrieve.new("http://example.com/search").set_query_params({"b": "2", "a": "1"})
        assert b.build_url() == "http://example.com/search?a=1&b=2"

    def test_existing_query_preserved(self):
        b = retrieve.new("http://example.com/search?z=9&a=0").set_query_param("a", "1")
        assert b.url == "http://example.com/search?a=1&z=9"

    def test_values_are_percent_encoded(self):
        b = retrieve.new("http://example.com/search").set_query_param("q", "a&b=c")
        assert b.url == "http://example.com/search?q=a%26b%3Dc"

    def test_build_url_round_trip(self):
        """Should return the URL unchanged when nothing was mutated."""
        b = retrieve.new("https://example.com/path/file.txt?x=1")
        assert b.build_url() == "https://example.com/path/file.txt?x=1"


class TestStickyError:
    BAD_URL = "http://example.com:notaport/"

    def test_malformed_url_records_error(self):
        """Should record a ConfigurationError when the URL cannot be parsed."""
        b = retrieve.new(self.BAD_URL).set_query_param("key", "value")
        assert isinstance(b.state, Errored)
        assert isinstance(b.error, ConfigurationError)
        assert str(b.error).startswith("invalid URL:")
        assert b.url == self.BAD_URL

    @pytest.mark.parametrize(
        "url",
        ["http://exa mple.com/", "ht tp://x/", "http://example.com/\x7fpath", "http://example.com/a\nb"],
    )
    def test_whitespace_and_control_characters_record_error(self, url):
        """Should refuse URLs that httpx would otherwise quietly percent-encode."""
        b = retrieve.new(url).set_query_param("key", "value")
        assert isinstance(b.error, ConfigurationError)
        assert b.url == url
        with pytest.raises(ConfigurationError):
            b.build_url()

    def test_frozen_builder_ignores_configuration(self):
        """Should turn every setter into a no-op once an error is recorded."""
        b = retrieve.new(self.BAD_URL).set_query_param("key", "value")
        error = b.error

        ctx, cancel = Context.background().with_cancel()
        b.set_method("POST") \
            .set_header("Accept", "*/*") \
            .set_headers({"X": "1"}) \
            .set_body({"a": 1}) \
            .set_text("t") \
            .set_bytes(b"raw") \
            .set_json({"b": 2}) \
            .set_context(ctx) \
            .set_timeout(1.0) \
            .set_output("elsewhere") \
            .set_query_params({"other": "1"}) \
            .set_query_param("single", "1") \
            .ignore_status_code()

        assert b.method == "GET"
        assert b.headers == {}
        assert b.get_body() == ""
        assert b.timeout == 10.0
        assert b.output == "./"
        assert b.is_ignore_status_code is False
        assert b.error is error
        assert b.context is Context.background()
        assert b.url == self.BAD_URL
        cancel()

    def test_frozen_builder_skips_body_encoding(self):
        """Should not even try to encode a body once frozen."""
        b = retrieve.new(self.BAD_URL).set_query_param("key", "value")
        b.set_body(object())
        assert isinstance(b.error, ConfigurationError)

    def test_build_url_raises_sticky_error(self):
        b = retrieve.new(self.BAD_URL).set_query_param("key", "value")
        with pytest.raises(ConfigurationError) as exc:
            b.build_url()
        assert exc.value is b.error

    def test_first_error_wins(self):
        b = retrieve.new(self.BAD_URL).set_query_param("a", "1")
        first = b.error
        b.set_query_param("b", "2")
        assert b.error is first


class TestValidators:
    @pytest.mark.parametrize("method", ["GET", "get", "Post", "PUT", "pAtCh"])
    def test_valid_methods(self, method):
        assert is_valid_method(method)

    @pytest.mark.parametrize("method", ["DELETE", "HEAD", "OPTIONS", "", "GETS"])
    def test_invalid_methods(self, method):
        assert not is_valid_method(method)

    @pytest.mark.parametrize("url", ["http://example.com", "https://example.com:8443/a?b=c"])
    def test_valid_urls(self, url):
        assert is_valid_url(url)

    @pytest.mark.parametrize("url", [":://invalid-url", "example.com/path", "/relative", "http://example.com:bad"])
    def test_invalid_urls(self, url):
        assert not is_valid_url(url)
