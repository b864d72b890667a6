from edge_proxy.forwarder.headers import HeaderMap, build_outbound_headers
from edge_proxy.forwarder.target import TargetURL

TARGET = TargetURL(scheme="https", hostname="api.example.com", path="/users/42")


class TestHeaderMap:
    """Test the case-normalizing, last-value-wins mapping."""

    def test_keys_are_lowercased(self):
        headers = HeaderMap([("X-Custom", "v")])

        assert list(headers) == ["x-custom"]
        assert headers["X-CUSTOM"] == "v"
        assert "x-Custom" in headers

    def test_last_value_wins(self):
        headers = HeaderMap([("Accept", "text/html"), ("accept", "application/json")])

        assert len(headers) == 1
        assert headers.get("accept") == "application/json"

    def test_bytes_are_decoded_as_latin1(self):
        headers = HeaderMap([(b"x-name", "caf\xe9".encode("latin-1"))])

        assert headers["x-name"] == "caf\xe9"

    def test_raw_items_round_trip_inbound_bytes(self):
        headers = HeaderMap([(b"X-Name", "café".encode("utf-8"))])

        assert headers.raw_items() == [(b"x-name", b"caf\xc3\xa9")]

    def test_pop_and_missing(self):
        headers = HeaderMap([("Content-Length", "3")])

        assert headers.pop("content-length") == "3"
        assert headers.pop("content-length") is None
        assert headers.get("content-length", "n/a") == "n/a"
        assert 42 not in headers


class TestBuildOutboundHeaders:
    """Test the outbound header set."""

    def test_excludes_hop_by_hop_and_platform_headers(self):
        inbound = [
            ("Host", "proxy.example.com"),
            ("Connection", "keep-alive"),
            ("Keep-Alive", "timeout=5"),
            ("CF-Ray", "8a1b2c3d4e5f-AMS"),
            ("CF-Connecting-IP", "203.0.113.7"),
            ("CF-Visitor", '{"scheme":"https"}'),
            ("X-Custom", "v"),
        ]

        result = build_outbound_headers(inbound, TARGET)

        assert result.as_dict() == {"x-custom": "v", "host": "api.example.com"}

    def test_host_points_at_target(self):
        target = TargetURL(scheme="http", hostname="localhost", port=8080)

        result = build_outbound_headers([("host", "proxy.example.com")], target)

        assert result["Host"] == "localhost:8080"

    def test_values_are_copied_verbatim(self):
        inbound = [
            ("Authorization", "Bearer token123"),
            ("Accept", "application/json"),
            ("Cookie", "a=1; b=2"),
        ]

        result = build_outbound_headers(inbound, TARGET)

        assert result["authorization"] == "Bearer token123"
        assert result["accept"] == "application/json"
        assert result["cookie"] == "a=1; b=2"

    def test_repeated_header_keeps_last_value(self):
        inbound = [("X-Trace", "first"), ("x-trace", "second")]

        result = build_outbound_headers(inbound, TARGET)

        assert result["x-trace"] == "second"

    def test_raw_asgi_headers(self):
        inbound = [(b"host", b"proxy.example.com"), (b"accept", b"*/*")]

        result = build_outbound_headers(inbound, TARGET)

        assert result.as_dict() == {"accept": "*/*", "host": "api.example.com"}

    def test_platform_headers_are_configurable(self, monkeypatch):
        monkeypatch.setattr(
            "edge_proxy.forwarder.headers.PLATFORM_IDENTITY_HEADERS",
            frozenset({"x-vercel-id"}),
        )
        inbound = [("X-Vercel-Id", "fra1::abc"), ("CF-Ray", "8a1b2c3d4e5f-AMS")]

        result = build_outbound_headers(inbound, TARGET)

        assert "x-vercel-id" not in result
        assert result["cf-ray"] == "8a1b2c3d4e5f-AMS"
