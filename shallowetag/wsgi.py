from __future__ import annotations

import logging
import typing as t
from types import TracebackType
from wsgiref.util import request_uri

from typing_extensions import assert_never

from shallowetag._core._headers import Headers
from shallowetag._core._states import AnyState, Capturing, Entering, Flush, NotModified, PassThrough
from shallowetag._core.models import Request, Response
from shallowetag._policies import EtagPolicy, Sha512EtagPolicy
from shallowetag._utils import make_status_line, parse_status_line

logger = logging.getLogger(__name__)

_ExcInfo = t.Tuple[t.Type[BaseException], BaseException, t.Optional[TracebackType]]
_OptExcInfo = t.Union[_ExcInfo, t.Tuple[None, None, None]]
_Write = t.Callable[[bytes], object]
_StartResponse = t.Callable[..., _Write]
_WSGIApp = t.Callable[[t.Dict[str, t.Any], _StartResponse], t.Iterable[bytes]]


class _WSGIExchange:
    """
    Per-request bookkeeping between the application and the real server.

    Owns the state machine for one request and stands in for the server's
    `start_response` while the response is being captured.
    """

    def __init__(self, policy: EtagPolicy, request: Request, start_response: _StartResponse) -> None:
        self.state: AnyState = Entering(policy=policy, request=request)
        self.reason = ""
        self._policy = policy
        self._request = request
        self._start_response = start_response

    def start_response(
        self,
        status: str,
        headers: t.List[t.Tuple[str, str]],
        exc_info: t.Optional[_OptExcInfo] = None,
    ) -> _Write:
        if isinstance(self.state, PassThrough):
            return self._start_response(status, headers, exc_info)

        if isinstance(self.state, Capturing):
            if exc_info is None:
                raise RuntimeError("start_response called a second time without exc_info")
            # Nothing has reached the server yet, so the error response simply replaces the captured one.
            self.state.abort()
            self.state = Entering(policy=self._policy, request=self._request)

        if not isinstance(self.state, Entering):
            raise RuntimeError(f"start_response called after the response was finalized: {type(self.state).__name__}")

        status_code, self.reason = parse_status_line(status)
        response = Response(status_code=status_code, headers=Headers(headers))
        logger.debug("Application response started: status=%d", status_code)

        self.state = self.state.next(response)
        if isinstance(self.state, PassThrough):
            return self._start_response(status, headers, exc_info)
        return self.write

    def write(self, chunk: bytes) -> None:
        if not isinstance(self.state, Capturing):
            raise RuntimeError(f"Cannot capture body data in state {type(self.state).__name__}")
        assert self.state.buffer is not None
        self.state.buffer.write(chunk)
        logger.debug("Captured response body chunk: size=%d bytes", len(chunk))

    def finalize(self) -> t.List[bytes]:
        assert isinstance(self.state, Capturing)
        final_state = self.state.next()
        self.state = final_state

        if isinstance(final_state, NotModified):
            self._send_start(final_state.response, make_status_line(final_state.response.status_code))
            return []
        elif isinstance(final_state, Flush):
            self._send_start(final_state.response, make_status_line(final_state.response.status_code, self.reason))
            return [final_state.body] if final_state.body else []
        else:
            assert_never(final_state)

    def abort(self) -> None:
        if isinstance(self.state, Capturing):
            self.state.abort()

    def _send_start(self, response: Response, status: str) -> None:
        logger.debug(
            "Sending response to client: status=%d headers_count=%d",
            response.status_code,
            len(response.headers),
        )
        self._start_response(status, response.headers.multi_items())


class WSGIEtagMiddleware:
    """
    WSGI middleware that adds SHA-512 ETags and answers conditional GETs.

    The synchronous counterpart of `shallowetag.asgi.ASGIEtagMiddleware`.
    Eligibility is decided when the application calls `start_response`.
    Eligible responses are buffered, including data passed to the legacy
    `write()` callable, and `start_response` is only forwarded to the server
    once the application's iterable is exhausted. Ineligible responses are
    streamed through untouched.

    If the application raises, the captured body is discarded, the
    application iterable is closed, and the exception propagates.

    Args:
        app: The WSGI application to wrap.
        policy: Decides eligibility and computes the ETag. Defaults to
            Sha512EtagPolicy() (strong validators).
    """

    def __init__(
        self,
        app: _WSGIApp,
        policy: EtagPolicy | None = None,
    ) -> None:
        self.app = app
        self._policy = policy if policy is not None else Sha512EtagPolicy()

        logger.info("Initialized WSGIEtagMiddleware with policy=%s", type(self._policy).__name__)

    @property
    def policy(self) -> EtagPolicy:
        return self._policy

    def __call__(self, environ: t.Dict[str, t.Any], start_response: _StartResponse) -> t.Iterable[bytes]:
        request = self._environ_to_internal_request(environ)
        logger.debug("Incoming HTTP request: method=%s url=%s", request.method, request.url)

        exchange = _WSGIExchange(self._policy, request, start_response)
        try:
            app_iter = self.app(environ, exchange.start_response)
        except Exception as e:
            logger.error(
                "Error calling wrapped application: method=%s url=%s error=%s",
                request.method,
                request.url,
                str(e),
                exc_info=True,
            )
            exchange.abort()
            raise
        return self._iter_response(exchange, request, app_iter)

    def _iter_response(
        self,
        exchange: _WSGIExchange,
        request: Request,
        app_iter: t.Iterable[bytes],
    ) -> t.Iterator[bytes]:
        app_finished = False
        try:
            for chunk in app_iter:
                if isinstance(exchange.state, Capturing):
                    exchange.write(chunk)
                else:
                    yield chunk
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
            close = getattr(app_iter, "close", None)
            if close is not None:
                close()
            if not app_finished:
                exchange.abort()

        if isinstance(exchange.state, Capturing):
            yield from exchange.finalize()

    def _environ_to_internal_request(self, environ: t.Dict[str, t.Any]) -> Request:
        """
        Convert a WSGI environ to an internal Request object.

        Args:
            environ: The WSGI environment dictionary.

        Returns:
            The internal Request object.
        """
        headers = Headers()
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers.add(key[5:].replace("_", "-"), value)
            elif key in ("CONTENT_TYPE", "CONTENT_LENGTH") and value:
                headers.add(key.replace("_", "-"), value)

        return Request(
            method=environ.get("REQUEST_METHOD", "GET"),
            url=request_uri(environ, include_query=True),
            headers=headers,
        )
