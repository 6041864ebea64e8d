#!/usr/bin/env python3
"""
HTTP client for the VMware REST API (vmrest).
"""

import json
from typing import Any, Optional

import requests
import structlog

from hvctrl.errors import ErrorKind, VmError
from hvctrl.translators import check_vmrest

log = structlog.get_logger(__name__)

VMREST_MEDIA_TYPE = "application/vnd.vmware.vmw.rest-v1+json"


class RestClient:
    """
    Thin wrapper over a requests Session.

    Every request carries the versioned vmrest media type. A 2xx response
    returns the body text. Any other status goes through the vmrest error
    translator; a body that is not a ``{code, message}`` envelope becomes
    ``Unknown("HTTP <status>: <body>")``.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8697",
        username: Optional[str] = None,
        password: Optional[str] = None,
        proxy: Optional[str] = None,
        encoding: str = "utf-8",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.proxy = proxy
        self.encoding = encoding
        self.timeout = timeout
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, body: Optional[Any] = None) -> str:
        """Send a request and return the decoded response text."""
        headers = {"Accept": VMREST_MEDIA_TYPE}
        data = None
        if body is not None:
            headers["Content-Type"] = VMREST_MEDIA_TYPE
            data = body if isinstance(body, str) else self.serialize(body)

        kwargs = {"headers": headers, "data": data, "timeout": self.timeout}
        if self.username is not None:
            kwargs["auth"] = (self.username, self.password or "")
        if self.proxy:
            kwargs["proxies"] = {"http": self.proxy}

        log.debug("vmrest.request", method=method, path=path)
        try:
            response = self.session.request(method, self.url(path), **kwargs)
        except requests.RequestException as e:
            raise VmError(ErrorKind.EXECUTION_FAILED, detail=str(e)) from e

        try:
            text = response.content.decode(self.encoding)
        except (LookupError, UnicodeDecodeError) as e:
            raise VmError.unknown(f"Failed to decode response: {e}") from e

        if 200 <= response.status_code < 300:
            return text

        log.debug("vmrest.error_response", status=response.status_code, body=text)
        error = check_vmrest(text)
        if error is not None:
            raise error
        raise VmError.unknown(f"HTTP {response.status_code}: {text}")

    def get(self, path: str) -> str:
        return self.request("GET", path)

    def put(self, path: str, body: Any) -> str:
        return self.request("PUT", path, body)

    def post(self, path: str, body: Any) -> str:
        return self.request("POST", path, body)

    def delete(self, path: str) -> str:
        return self.request("DELETE", path)

    @staticmethod
    def serialize(obj: Any) -> str:
        try:
            return json.dumps(obj)
        except (TypeError, ValueError) as e:
            raise VmError(ErrorKind.INVALID_PARAMETER, detail=str(e)) from e

    @staticmethod
    def deserialize(text: str) -> Any:
        try:
            return json.loads(text)
        except ValueError as e:
            raise VmError.unexpected(str(e)) from e
