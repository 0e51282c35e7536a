"""Tests for configuration validation and result models."""

import json

import pytest

from loadtest.core.models import (
    CONNECTION_ERROR_CODE,
    ConfigurationError,
    LoadTestConfig,
    TransportOutcome,
)


class TestLoadTestConfig:
    def test_defaults_are_closed_loop(self):
        config = LoadTestConfig(url="http://localhost:8080/")
        config.validate()
        assert config.concurrency == 1
        assert not config.is_rate_limited
        assert config.test_mode == "closed_loop"

    def test_rate_makes_open_loop(self):
        config = LoadTestConfig(url="http://localhost/", requests_per_second=2.5)
        assert config.is_rate_limited
        assert config.test_mode == "open_loop"

    @pytest.mark.parametrize(
        "options, message",
        [
            ({"url": ""}, "Missing URL"),
            ({"url": "ftp://localhost/"}, "Unsupported URL scheme"),
            ({"url": "localhost:8080"}, "Unsupported URL scheme"),
            ({"url": "http:///path"}, "Missing host"),
            ({"concurrency": 0}, "Concurrency"),
            ({"max_requests": 0}, "Max requests"),
            ({"max_seconds": -1}, "Max seconds"),
            ({"requests_per_second": 0}, "Requests per second"),
            ({"show_interval_ms": 0}, "Show interval"),
            ({"drain_seconds": -0.5}, "Drain seconds"),
            ({"method": ""}, "method"),
            ({"index_param": "IDX"}, "Index parameter"),
            ({"body": 42}, "Unrecognized body"),
        ],
    )
    def test_invalid_options_are_rejected(self, options, message):
        config = LoadTestConfig(**{"url": "http://localhost:8080/", **options})
        with pytest.raises(ConfigurationError, match=message):
            config.validate()

    def test_configuration_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            LoadTestConfig().validate()

    def test_websocket_schemes_are_accepted(self):
        LoadTestConfig(url="ws://localhost/socket").validate()
        LoadTestConfig(url="WSS://localhost/socket").validate()

    def test_url_for_client_substitutes_every_occurrence(self):
        config = LoadTestConfig(url="http://host/u/IDX?copy=IDX", index_param="IDX")
        assert config.url_for_client(3) == "http://host/u/3?copy=3"

    def test_url_for_client_without_index_param(self):
        config = LoadTestConfig(url="http://host/IDX")
        assert config.url_for_client(7) == "http://host/IDX"

    def test_body_encoding(self):
        assert LoadTestConfig(url="http://h/").encoded_body() is None
        assert LoadTestConfig(url="http://h/", body="héllo").encoded_body() == "héllo".encode()
        assert LoadTestConfig(url="http://h/", body=b"\x00\x01").encoded_body() == b"\x00\x01"
        encoded = LoadTestConfig(url="http://h/", body={"a": 1}).encoded_body()
        assert json.loads(encoded) == {"a": 1}

    def test_content_type_resolution(self):
        assert LoadTestConfig(url="http://h/", body="x").resolved_content_type() == "text/plain"
        assert (
            LoadTestConfig(url="http://h/", body=[1]).resolved_content_type()
            == "application/json"
        )
        config = LoadTestConfig(url="http://h/", body="x", content_type="application/xml")
        assert config.resolved_content_type() == "application/xml"


class TestTransportOutcome:
    def test_success(self):
        outcome = TransportOutcome(status=204)
        assert outcome.success
        assert outcome.error_code is None

    def test_websocket_reply_without_status_is_success(self):
        assert TransportOutcome().success

    def test_connection_error_uses_sentinel(self):
        outcome = TransportOutcome(error="Connection refused")
        assert not outcome.success
        assert outcome.error_code == CONNECTION_ERROR_CODE

    @pytest.mark.parametrize("status", [301, 404, 500, 503])
    def test_failure_status_is_the_error_code(self, status):
        assert TransportOutcome(status=status).error_code == status
