from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Optional,
    Union,
)

from shallowetag._core.models import ContentCachingBuffer, Request, Response
from shallowetag._exceptions import CaptureBufferMissingError

if TYPE_CHECKING:
    from shallowetag._policies import EtagPolicy


HEADER_ETAG = "ETag"
HEADER_IF_NONE_MATCH = "If-None-Match"
HEADER_CACHE_CONTROL = "Cache-Control"
DIRECTIVE_NO_STORE = "no-store"
NOT_MODIFIED = 304

logger = logging.getLogger("shallowetag.core.states")


def is_eligible_for_etag(request: Request, response: Response) -> bool:
    """
    Decide whether a response should get a content-based ETag.

    A response is eligible when its status code is below 300 and its
    Cache-Control header, if any, does not contain "no-store". The request is
    accepted so that custom policies can look at it; this default ignores it.
    """

    if response.status_code >= 300:
        logger.debug(
            "Response is not eligible for an ETag because its status code (%d) is not below 300",
            response.status_code,
        )
        return False

    cache_control = response.headers.get(HEADER_CACHE_CONTROL)
    if cache_control is not None and DIRECTIVE_NO_STORE in cache_control:
        logger.debug("Response is not eligible for an ETag because the no-store cache directive is present")
        return False

    return True


def generate_sha512_etag(body: bytes, weak: bool = False) -> str:
    """
    Build an ETag value from the SHA-512 digest of the body.

    Examples:
        >>> generate_sha512_etag(b"")[:5]
        '"cf83'
        >>> generate_sha512_etag(b"", weak=True)[:7]
        'W/"cf83'
    """
    digest = hashlib.sha512(body).hexdigest()
    return ('W/"' if weak else '"') + digest + '"'


def if_none_match_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    Compare the request validator with the generated one.

    The comparison is an exact string match, so W/"x" does not match "x".
    The wildcard "*" matches any generated ETag.
    """
    if if_none_match is None:
        return False
    return if_none_match == etag or if_none_match == "*"


@dataclass
class State(ABC):
    policy: EtagPolicy

    @abstractmethod
    def next(self, *args: Any, **kwargs: Any) -> Union["State", None]:
        raise NotImplementedError("Subclasses must implement this method")


@dataclass
class Entering(State):
    """
    Entry point of the per-request state machine.

    The response status and headers are known, but no body byte has been
    written yet.

    State Transitions:
    -----------------
    - PassThrough: the policy says the response is not eligible for an ETag
    - Capturing: the body must be buffered and fingerprinted
    """

    request: Request

    def next(self, response: Response) -> Union["PassThrough", "Capturing"]:
        if not self.policy.is_eligible(self.request, response):
            logger.debug("Passing response through without an ETag")
            return PassThrough(policy=self.policy, response=response)

        logger.debug("Capturing response body for ETag generation")
        return Capturing(
            policy=self.policy,
            request=self.request,
            response=response,
            buffer=ContentCachingBuffer(),
        )


@dataclass
class Capturing(State):
    """
    The downstream application is writing the body into `buffer`.

    Calling `next` once the application has finished finalizes the response:
    it generates the ETag, compares it against If-None-Match, and either
    rewrites the response as 304 Not Modified or releases the captured body.
    The buffer is consumed by `next`, so a second call raises
    `CaptureBufferMissingError`.

    State Transitions:
    -----------------
    - NotModified: the request validator matches the generated ETag
    - Flush: the body is empty or the validators differ
    - PassThrough (via `bypass`): the body is sent out of band and cannot be captured
    """

    request: Request
    response: Response
    buffer: Optional[ContentCachingBuffer] = field(default=None)

    def next(self) -> Union["Flush", "NotModified"]:
        if self.buffer is None or self.buffer.released:
            raise CaptureBufferMissingError(f"Content caching buffer not found for response: {self.response!r}")

        body = self.buffer.content
        if len(body) == 0:
            logger.debug("Captured body is empty, skipping ETag generation")
            return Flush(policy=self.policy, response=self.response, body=self.buffer.release())

        etag = self.policy.generate_etag(body)
        self.response.headers[HEADER_ETAG] = etag
        logger.debug("Generated ETag for %d byte body: %s", len(body), etag)

        if if_none_match_matches(self.request.headers.get(HEADER_IF_NONE_MATCH), etag):
            logger.debug("If-None-Match matched, responding with 304 Not Modified")
            self.buffer.discard()
            self.response.status_code = NOT_MODIFIED
            self.response.headers["Content-Length"] = "0"
            return NotModified(policy=self.policy, response=self.response)

        released = self.buffer.release()
        if "Transfer-Encoding" not in self.response.headers:
            self.response.headers["Content-Length"] = str(len(released))
        logger.debug("Releasing captured body: size=%d bytes", len(released))
        return Flush(policy=self.policy, response=self.response, body=released)

    def bypass(self) -> "PassThrough":
        """
        Give up on capturing because the body is delivered out of band
        (for example a file sent by path), so it can never be fingerprinted.
        """
        if self.buffer is None or self.buffer.released:
            raise CaptureBufferMissingError(f"Content caching buffer not found for response: {self.response!r}")
        logger.debug("Response body bypasses capture, passing response through without an ETag")
        self.buffer.discard()
        return PassThrough(policy=self.policy, response=self.response)

    def abort(self) -> None:
        """Throw the captured body away after the downstream application failed."""
        if self.buffer is not None and not self.buffer.released:
            logger.debug("Discarding captured body after downstream failure: size=%d bytes", len(self.buffer))
            self.buffer.discard()


@dataclass
class PassThrough(State):
    """
    The response is not eligible; its body goes to the client as produced.
    """

    response: Response

    def next(self) -> None:
        return None


@dataclass
class Flush(State):
    """
    The captured body must be written unchanged to the client.

    `body` is empty when nothing was captured, in which case the response is
    sent exactly as the application set it.
    """

    response: Response
    body: bytes

    def next(self) -> None:
        return None


@dataclass
class NotModified(State):
    """
    The client's copy is current. The response carries status 304 and
    Content-Length 0; no body must be written.
    """

    response: Response

    def next(self) -> None:
        return None


AnyState = Union[
    Entering,
    Capturing,
    PassThrough,
    Flush,
    NotModified,
]
