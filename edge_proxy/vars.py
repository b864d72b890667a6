import os


def _parse_header_list(raw: str) -> frozenset:
    return frozenset(h.strip().lower() for h in raw.split(",") if h.strip())


SERVICE_NAME = os.getenv("SERVICE_NAME", "edge-proxy")
# Value of the X-Proxied-By response header
PROXY_IDENTITY = os.getenv("PROXY_IDENTITY", "Edge-Proxy")
# Transport ceiling in seconds, the proxy itself never cuts a request short
PROXY_TIMEOUT = float(os.getenv("PROXY_TIMEOUT", "300"))

# Client-identity headers injected by the edge platform in front of us
PLATFORM_IDENTITY_HEADERS = _parse_header_list(
    os.getenv("PLATFORM_IDENTITY_HEADERS", "cf-connecting-ip,cf-ray,cf-visitor")
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
