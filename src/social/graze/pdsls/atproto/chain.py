from abc import ABC, abstractmethod
from dataclasses import dataclass
from time import time
from types import TracebackType
from typing import (
    Any,
    Awaitable,
    Callable,
    Generator,
    Optional,
    Sequence,
    Tuple,
)
import logging
from aiohttp import ClientResponse, ClientSession, hdrs
from aiohttp.typedefs import StrOrURL
from multidict import CIMultiDictProxy

from social.graze.pdsls.app.metrics import MetricsClient

RequestFunc = Callable[..., Awaitable[ClientResponse]]

logger = logging.getLogger(__name__)


@dataclass
class ChainRequest:
    method: str
    url: StrOrURL
    headers: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    kwargs: dict[str, Any] | None = None


@dataclass
class ChainResponse:
    status: int
    headers: CIMultiDictProxy[str]
    body: str | bytes | dict[str, Any] | None = None

    @staticmethod
    async def from_aiohttp_response(response: ClientResponse) -> "ChainResponse":
        status = response.status
        headers = response.headers

        content_type = response.headers.get(hdrs.CONTENT_TYPE, "")

        if content_type.startswith("application/json"):
            return ChainResponse(
                status=status, headers=headers, body=await response.json()
            )
        elif content_type.startswith("text/"):
            return ChainResponse(
                status=status, headers=headers, body=await response.text()
            )
        else:
            return ChainResponse(
                status=status, headers=headers, body=await response.read()
            )

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def body_value(self, key: str) -> Optional[Any]:
        if isinstance(self.body, dict):
            return self.body.get(key, None)
        return None


NextChainResponseCallbackType = Tuple[ClientResponse, ChainResponse]

NextChainCallbackType = Callable[
    [ChainRequest], Awaitable[NextChainResponseCallbackType]
]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        pass

    def handle_gen(self, next: NextChainCallbackType) -> NextChainCallbackType:
        async def next_invoke(request: ChainRequest) -> NextChainResponseCallbackType:
            return await self.handle(next, request)

        return next_invoke


class StatsdMiddleware(RequestMiddlewareBase):
    """Times each request and counts failures, tagged by XRPC method and status."""

    def __init__(self, metrics_client: MetricsClient, prefix: str = "pdsls") -> None:
        super().__init__()
        self._metrics_client = metrics_client
        self._prefix = prefix

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        xrpc_method = str(request.url).rsplit("/", 1)[-1]
        start_time = time()
        status = 0
        try:
            response = await next(request)
            status = response[1].status
            return response
        except Exception as e:
            self._metrics_client.increment(
                f"{self._prefix}.xrpc.request.exception",
                1,
                tag_dict={"exception": type(e).__name__, "method": xrpc_method},
            )
            raise
        finally:
            self._metrics_client.timer(
                f"{self._prefix}.xrpc.request.time",
                time() - start_time,
                tag_dict={"method": xrpc_method, "status": str(status)},
            )


class DebugMiddleware(RequestMiddlewareBase):
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        logger.debug("Request: %s %s params=%s", request.method, request.url, request.params)
        client_response, chain_response = await next(request)
        logger.debug(
            "Response: %s %s status=%s body=%s",
            request.method,
            request.url,
            chain_response.status,
            chain_response.body,
        )
        return client_response, chain_response


class EndOfLineChainMiddleware:
    def __init__(
        self,
        request_func: RequestFunc,
        logger: logging.Logger,
    ) -> None:
        super().__init__()
        self._request_func = request_func
        self._logger = logger

    async def handle(self, request: ChainRequest) -> NextChainResponseCallbackType:

        self._logger.debug(f"Making request: {request.method} {request.url}")

        response: ClientResponse = await self._request_func(
            request.method.lower(),
            request.url,
            headers=request.headers,
            params=request.params,
            **(request.kwargs or {}),
        )

        return response, await ChainResponse.from_aiohttp_response(response)


class ChainMiddlewareContext:
    """
    Awaitable and async context manager around one pass through the middleware chain.

    The request is sent exactly once.
    """

    def __init__(
        self,
        chain_callback: NextChainCallbackType,
        chain_request: ChainRequest,
    ) -> None:
        self._chain_callback = chain_callback
        self._chain_request = chain_request
        self.client_response: ClientResponse | None = None

    async def _do_request(self) -> NextChainResponseCallbackType:
        client_response, chain_response = await self._chain_callback(
            self._chain_request
        )
        self.client_response = client_response
        return client_response, chain_response

    def __await__(self) -> Generator[Any, None, NextChainResponseCallbackType]:
        return self.__aenter__().__await__()

    async def __aenter__(self) -> NextChainResponseCallbackType:
        return await self._do_request()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.client_response is not None and not self.client_response.closed:
            self.client_response.close()


class ChainMiddlewareClient:
    """
    Thin wrapper around a shared ClientSession that runs requests through a middleware chain.

    The client never owns the session it is given, so closing it is the caller's job.
    """

    def __init__(
        self,
        client_session: ClientSession,
        middleware: Sequence[RequestMiddlewareBase] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client_session
        self._middleware = middleware
        self._logger = logger or logging.getLogger("aiohttp_chain")

    def get(
        self,
        url: StrOrURL,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        return self._make_request(method=hdrs.METH_GET, url=url, params=params, **kwargs)

    def request(
        self,
        method: str,
        url: StrOrURL,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        return self._make_request(method=method, url=url, params=params, **kwargs)

    def _make_request(
        self,
        method: str,
        url: StrOrURL,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        chain_request = ChainRequest(
            method=method,
            url=url,
            headers=kwargs.pop("headers", {}),
            params=params,
            kwargs=kwargs,
        )

        end_of_line_middleware = EndOfLineChainMiddleware(
            request_func=self._client.request,
            logger=self._logger,
        )

        chain_callback: NextChainCallbackType = end_of_line_middleware.handle

        for mw in reversed(self._middleware or []):
            chain_callback = mw.handle_gen(chain_callback)

        return ChainMiddlewareContext(
            chain_callback=chain_callback,
            chain_request=chain_request,
        )
