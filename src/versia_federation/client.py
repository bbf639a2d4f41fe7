"""Signed HTTP requests to other Versia servers.

Every outgoing request goes through SignatureConstructor.sign_request when a
signer is configured. The body is serialized once, so the bytes that are
signed are the bytes that are sent.
"""

import json as jsonlib
import logging
from typing import Any, Callable, Optional, Union

import httpx

from .config import DEFAULT_USER_AGENT, FederationConfig
from .signing import SignatureConstructor
from .types import Output, ResponseError

logger = logging.getLogger(__name__)


class FederationRequester:
    """Sends requests to a remote server, signed as one actor.

    Usage:
        signer = SignatureConstructor.from_base64_key(private_key, actor_uri)
        async with FederationRequester("https://bob.org", signer) as requester:
            output = await requester.post("/inbox", json=note)
    """

    def __init__(
        self,
        server_url: Union[str, httpx.URL],
        signature_constructor: Optional[SignatureConstructor] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        global_catch: Optional[Callable[[ResponseError], None]] = None,
    ):
        """Initialize the requester.

        Args:
            server_url: Base URL of the remote server
            signature_constructor: Signer for outgoing requests (optional)
            user_agent: User-Agent header value
            timeout: Request timeout in seconds
            transport: Custom httpx transport (mostly for tests)
            global_catch: Called with every ResponseError before it is raised
        """
        self.server_url = httpx.URL(str(server_url))
        self.signature_constructor = signature_constructor
        self.user_agent = user_agent
        self.global_catch = global_catch
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_config(
        cls,
        config: FederationConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        global_catch: Optional[Callable[[ResponseError], None]] = None,
    ) -> "FederationRequester":
        if not config.base_url:
            raise ValueError("base_url is required")
        return cls(
            config.base_url,
            config.signature_constructor(),
            user_agent=config.user_agent,
            timeout=config.timeout,
            transport=transport,
            global_catch=global_catch,
        )

    @property
    def url(self) -> httpx.URL:
        return self.server_url

    # -------------------------------------------------------------------------
    # One-shot requests
    # -------------------------------------------------------------------------

    @classmethod
    async def get_url(
        cls,
        url: Union[str, httpx.URL],
        signature_constructor: Optional[SignatureConstructor] = None,
        headers: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> Output:
        """GET an absolute URL with a short-lived requester."""
        server_url, path = cls._split_url(url)
        async with cls(server_url, signature_constructor, transport=transport) as requester:
            return await requester.get(path, headers=headers)

    @classmethod
    async def post_url(
        cls,
        url: Union[str, httpx.URL],
        json: Any,
        signature_constructor: Optional[SignatureConstructor] = None,
        headers: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> Output:
        """POST a JSON body to an absolute URL with a short-lived requester."""
        server_url, path = cls._split_url(url)
        async with cls(server_url, signature_constructor, transport=transport) as requester:
            return await requester.post(path, json=json, headers=headers)

    @staticmethod
    def _split_url(url: Union[str, httpx.URL]):
        """Split an absolute URL into (origin, path with query)."""
        url = httpx.URL(str(url))
        if not url.is_absolute_url:
            raise ValueError(f"Expected an absolute URL, got {str(url)!r}")
        origin = httpx.URL(f"{url.scheme}://{url.netloc.decode('ascii')}")
        return origin, url.raw_path.decode("ascii")

    # -------------------------------------------------------------------------
    # HTTP verbs
    # -------------------------------------------------------------------------

    async def get(self, path: str, headers: Optional[dict] = None) -> Output:
        return await self.request("GET", path, headers=headers)

    async def post(self, path: str, json: Any = None, headers: Optional[dict] = None) -> Output:
        return await self.request("POST", path, json=json, headers=headers)

    async def put(self, path: str, json: Any = None, headers: Optional[dict] = None) -> Output:
        return await self.request("PUT", path, json=json, headers=headers)

    async def patch(self, path: str, json: Any = None, headers: Optional[dict] = None) -> Output:
        return await self.request("PATCH", path, json=json, headers=headers)

    async def delete(self, path: str, json: Any = None, headers: Optional[dict] = None) -> Output:
        return await self.request("DELETE", path, json=json, headers=headers)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> Output:
        """Send a (signed) request and decode the response.

        Raises:
            ResponseError: If the server answers with a non-2xx status.
            httpx.HTTPError: On transport failures.
        """
        request = await self.build_request(method, path, json=json, headers=headers)
        response = await self._client.send(request)

        if not response.is_success:
            try:
                self._handle_error(request, response)
            except ResponseError as e:
                if self.global_catch is not None:
                    self.global_catch(e)
                raise

        return Output(data=self._decode(response), ok=True, raw=response, request=request)

    async def build_request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> httpx.Request:
        """Build the request that `request` would send, signed if possible."""
        request_headers = {"User-Agent": self.user_agent}
        body = None

        if json is not None:
            body = jsonlib.dumps(json).encode()
            request_headers["Content-Type"] = "application/json; charset=utf-8"

        request_headers.update(headers or {})
        request_headers["Accept"] = "application/json"

        request = httpx.Request(
            method,
            self.server_url.join(path),
            headers=request_headers,
            content=body,
        )

        if self.signature_constructor is None:
            return request
        return (await self.signature_constructor.sign_request(request)).request

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _decode(self, response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        if "json" in response.headers.get("Content-Type", ""):
            return response.json()
        return response.text or None

    def _handle_error(self, request: httpx.Request, response: httpx.Response) -> None:
        """Raise a ResponseError for a failed response."""
        try:
            data = self._decode(response)
        except ValueError:
            data = response.text

        detail = None
        if isinstance(data, dict):
            detail = data.get("error") or data.get("message")

        logger.info(
            "%s %s failed with HTTP %s", request.method, request.url, response.status_code
        )
        raise ResponseError(
            Output(data=data, ok=False, raw=response, request=request),
            f"Request failed ({response.status_code}): {detail or response.reason_phrase}",
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
