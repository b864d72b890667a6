from typing import Any, Dict, Optional


class ProxyFailure(Exception):
    """Base class for every failure the forwarder turns into a JSON response."""

    error = "Proxy Failure"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_client_payload(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class InvalidURL(ProxyFailure):
    error = "Invalid URL"
    status_code = 400

    def __init__(
        self,
        usage: str,
        message: str = "Please provide a valid URL to proxy",
        candidate: Optional[str] = None,
    ):
        super().__init__(message)
        self.usage = usage
        # not rendered to the client, only kept for logs
        self.candidate = candidate

    def to_client_payload(self) -> Dict[str, Any]:
        payload = super().to_client_payload()
        payload["usage"] = self.usage
        return payload


class InvalidProtocol(ProxyFailure):
    error = "Invalid Protocol"
    status_code = 400

    def __init__(
        self,
        scheme: str = "",
        message: str = "Only HTTP and HTTPS protocols are supported",
    ):
        super().__init__(message)
        self.scheme = scheme


class DomainNotAllowed(ProxyFailure):
    """Extension point for deployments that restrict target hosts.

    Nothing in the forwarder raises it; the status mapping is part of the
    response contract so an allow-list can be added without touching it.
    """

    error = "Domain Not Allowed"
    status_code = 403

    def __init__(
        self,
        target: str,
        message: str = "The requested domain is not allowed",
    ):
        super().__init__(message)
        self.target = target

    def to_client_payload(self) -> Dict[str, Any]:
        payload = super().to_client_payload()
        payload["target"] = self.target
        return payload


class ProxyError(ProxyFailure):
    error = "Proxy Error"
    status_code = 502

    def __init__(self, message: str, target: str):
        super().__init__(message)
        self.target = target

    def to_client_payload(self) -> Dict[str, Any]:
        payload = super().to_client_payload()
        payload["target"] = self.target
        return payload
