"""
JSON-RPC 2.0 transport over HTTP.
"""
import itertools
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import redact_url, scrub_url_secrets, validate_url
from .exceptions import BundlerConnectionError, BundlerRPCError
from .version import USER_AGENT

logger = logging.getLogger(__name__)


class JsonRpcTransport:
    """
    Minimal JSON-RPC client holding a pooled HTTP session.

    HTTP 5xx responses and connection errors are retried by the session
    adapter. JSON-RPC error objects are never retried; they are raised as
    BundlerRPCError.
    """

    def __init__(
        self,
        url: str,
        retry_count: int = 3,
        timeout: int = 30,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the transport

        Args:
            url: JSON-RPC endpoint URL
            retry_count: Number of retries for failed HTTP requests
            timeout: Timeout for HTTP requests in seconds
            headers: Extra HTTP headers sent with each request
            session: Pre-configured session to use instead of creating one
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        validate_url("url", url)
        self.url = url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["POST"],
                raise_on_status=False,
                connect=retry_count,
                read=retry_count,
                other=retry_count
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
            session.headers["User-Agent"] = USER_AGENT
        self.session = session
        if headers:
            self.session.headers.update(headers)

    def call(self, method: str, params: List[Any]) -> Any:
        """
        Perform one JSON-RPC call.

        Args:
            method: RPC method name
            params: Positional parameters

        Returns:
            The ``result`` member of the response (may be None)

        Raises:
            BundlerConnectionError: On transport failure, HTTP error status or a non-JSON body
            BundlerRPCError: If the response carries an ``error`` object
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        self.logger.debug(f"RPC {method} -> {redact_url(self.url)}")

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            reason = scrub_url_secrets(str(e), self.url)
            self.logger.error(f"RPC {method} request failed: {reason}")
            raise BundlerConnectionError(f"RPC {method} request failed: {reason}") from None

        try:
            data = response.json()
        except ValueError as e:
            if response.status_code >= 400:
                raise BundlerConnectionError(f"RPC {method} failed with HTTP {response.status_code}") from e
            raise BundlerConnectionError(f"Invalid JSON response for {method}: {str(e)}") from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                message = str(error.get("message") or "RPC error")
                code = error.get("code")
                err_data = error.get("data")
            else:
                message, code, err_data = str(error), None, None
            self.logger.debug(f"RPC {method} returned error {code}: {message}")
            raise BundlerRPCError(message, code=code, data=err_data, method=method)

        if response.status_code >= 400:
            raise BundlerConnectionError(f"RPC {method} failed with HTTP {response.status_code}")

        if not isinstance(data, dict) or "result" not in data:
            raise BundlerConnectionError(f"Malformed JSON-RPC response for {method}: {data}")

        return data["result"]

    def close(self) -> None:
        self.session.close()
