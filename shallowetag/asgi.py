from __future__ import annotations

import logging
import typing as t

from typing_extensions import assert_never

from shallowetag._core._headers import Headers
from shallowetag._core._states import AnyState, Capturing, Entering, Flush, NotModified, PassThrough
from shallowetag._core.models import Request, Response
from shallowetag._policies import EtagPolicy, Sha512EtagPolicy
from shallowetag._utils import HEADERS_ENCODING

logger = logging.getLogger(__name__)


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Message = t.Dict[str, t.Any]
_Receive = t.Callable[[], t.Awaitable[_Message]]
_Send = t.Callable[[_Message], t.Awaitable[None]]
_ASGIApp = t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]

# Response extensions that hand the body to the server without passing it through
# http.response.body, so it can never be captured.
_OUT_OF_BAND_BODY_MESSAGES = frozenset({"http.response.pathsend", "http.response.zerocopysend"})


class ASGIEtagMiddleware:
    """
    ASGI middleware that adds SHA-512 ETags and answers conditional GETs.

    The response body of every eligible response is buffered until the
    application sends its last body chunk. The middleware then sets the ETag
    header and either sends the body unchanged or, when the request's
    If-None-Match header matches, replaces the response with 304 Not Modified.

    Ineligible responses (status 300 and above, or Cache-Control: no-store by
    default) are streamed through untouched. If the application raises while
    a body is being captured, the captured bytes are discarded, nothing is
    sent, and the exception propagates.

    Bodies handed to the server out of band (the `http.response.pathsend` and
    `http.response.zerocopysend` extensions) cannot be fingerprinted; such
    responses are passed through without an ETag.

    All per-request state lives inside `__call__`, so one middleware instance
    can serve concurrent requests.

    Args:
        app: The ASGI application to wrap.
        policy: Decides eligibility and computes the ETag. Defaults to
            Sha512EtagPolicy() (strong validators).

    Example:
        ```python
        from shallowetag import Sha512EtagPolicy
        from shallowetag.asgi import ASGIEtagMiddleware

        app = ASGIEtagMiddleware(
            app=my_asgi_app,
            policy=Sha512EtagPolicy(write_weak_etag=True),
        )
        ```
    """

    def __init__(
        self,
        app: _ASGIApp,
        policy: EtagPolicy | None = None,
    ) -> None:
        self.app = app
        self._policy = policy if policy is not None else Sha512EtagPolicy()

        logger.info("Initialized ASGIEtagMiddleware with policy=%s", type(self._policy).__name__)

    @property
    def policy(self) -> EtagPolicy:
        return self._policy

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        """
        Handle an ASGI request.

        Args:
            scope: The ASGI scope dictionary.
            receive: The ASGI receive callable.
            send: The ASGI send callable.
        """
        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            await self.app(scope, receive, send)
            return

        request = self._asgi_to_internal_request(scope)
        logger.debug("Incoming HTTP request: method=%s url=%s", request.method, request.url)

        state: AnyState = Entering(policy=self._policy, request=request)
        start_message: _Message = {}

        async def inner_send(message: _Message) -> None:
            nonlocal state, start_message

            if message["type"] == "http.response.start":
                if not isinstance(state, Entering):
                    raise RuntimeError(f"Unexpected response start message in state {type(state).__name__}")
                start_message = message
                response = Response(
                    status_code=message["status"],
                    headers=self._asgi_to_headers(message.get("headers", [])),
                )
                logger.debug("Application response started: status=%d", response.status_code)
                state = state.next(response)
                if isinstance(state, PassThrough):
                    await send(message)
                return

            if message["type"] == "http.response.body" and isinstance(state, Capturing):
                assert state.buffer is not None
                chunk = message.get("body", b"")
                state.buffer.write(chunk)
                logger.debug("Captured response body chunk: size=%d bytes", len(chunk))
                if not message.get("more_body", False):
                    final_state = state.next()
                    state = final_state
                    await self._send_final_response(final_state, start_message, send)
                return

            if message["type"] in _OUT_OF_BAND_BODY_MESSAGES and isinstance(state, Capturing):
                state = state.bypass()
                await send(start_message)
                await send(message)
                return

            await send(message)

        app_finished = False
        try:
            await self.app(scope, receive, inner_send)
            app_finished = True
        except Exception as e:
            logger.error(
                "Error calling wrapped application: method=%s url=%s error=%s",
                request.method,
                request.url,
                str(e),
                exc_info=True,
            )
            raise
        finally:
            if isinstance(state, Capturing):
                if app_finished:
                    logger.debug("Application returned without completing the body, finalizing captured response")
                    final_state = state.next()
                    state = final_state
                    await self._send_final_response(final_state, start_message, send)
                else:
                    state.abort()

    async def _send_final_response(
        self,
        final_state: t.Union[Flush, NotModified],
        start_message: _Message,
        send: _Send,
    ) -> None:
        if isinstance(final_state, NotModified):
            await self._send_internal_response(final_state.response, b"", start_message, send)
        elif isinstance(final_state, Flush):
            await self._send_internal_response(final_state.response, final_state.body, start_message, send)
        else:
            assert_never(final_state)

    def _asgi_to_internal_request(self, scope: _Scope) -> Request:
        """
        Convert an ASGI HTTP scope to an internal Request object.

        Args:
            scope: The ASGI scope dictionary.

        Returns:
            The internal Request object.
        """
        scheme = scope.get("scheme", "http")
        server = scope.get("server")

        if server is None:
            server = ("localhost", 80)

        host = server[0]
        port = server[1] if server[1] is not None else (443 if scheme == "https" else 80)

        if (scheme == "http" and port != 80) or (scheme == "https" and port != 443):
            host = f"{host}:{port}"

        path = scope.get("path", "/")
        query_string = scope.get("query_string", b"")
        if query_string:
            path = f"{path}?{query_string.decode(HEADERS_ENCODING)}"

        return Request(
            method=scope.get("method", "GET"),
            url=f"{scheme}://{host}{path}",
            headers=self._asgi_to_headers(scope.get("headers", [])),
        )

    @staticmethod
    def _asgi_to_headers(raw_headers: t.Iterable[tuple[bytes, bytes]]) -> Headers:
        return Headers(
            [(key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING)) for key, value in raw_headers]
        )

    async def _send_internal_response(
        self,
        response: Response,
        body: bytes,
        start_message: _Message,
        send: _Send,
    ) -> None:
        """
        Send a finalized response to the ASGI send callable.

        Args:
            response: The finalized response snapshot.
            body: The body to send, empty for 304 responses.
            start_message: The start message sent by the application; extra
                keys such as "trailers" are preserved.
            send: The ASGI send callable.
        """
        logger.debug(
            "Sending response to client: status=%d headers_count=%d",
            response.status_code,
            len(response.headers),
        )

        headers: list[tuple[bytes, bytes]] = [
            (key.encode(HEADERS_ENCODING), value.encode(HEADERS_ENCODING))
            for key, value in response.headers.multi_items()
        ]

        await send(
            {
                **start_message,
                "type": "http.response.start",
                "status": response.status_code,
                "headers": headers,
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": body,
                "more_body": False,
            }
        )
        logger.debug(
            "Response fully sent: status=%d total_bytes=%d",
            response.status_code,
            len(body),
        )
