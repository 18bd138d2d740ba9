from shallowetag._core._headers import Headers as Headers
from shallowetag._core._states import (
    AnyState as AnyState,
    Capturing as Capturing,
    Entering as Entering,
    Flush as Flush,
    NotModified as NotModified,
    PassThrough as PassThrough,
    State as State,
    generate_sha512_etag as generate_sha512_etag,
    if_none_match_matches as if_none_match_matches,
    is_eligible_for_etag as is_eligible_for_etag,
)
from shallowetag._core.models import (
    ContentCachingBuffer as ContentCachingBuffer,
    Request as Request,
    Response as Response,
)
from shallowetag._exceptions import CaptureBufferMissingError, ShallowEtagError
from shallowetag._policies import EtagPolicy, FunctionPolicy, Sha512EtagPolicy
from shallowetag.asgi import ASGIEtagMiddleware
from shallowetag.wsgi import WSGIEtagMiddleware

__all__ = (
    ## States
    "AnyState",
    "State",
    "Entering",
    "Capturing",
    "PassThrough",
    "Flush",
    "NotModified",
    ## Models
    "Request",
    "Response",
    "ContentCachingBuffer",
    ## Headers
    "Headers",
    ## Validators
    "generate_sha512_etag",
    "is_eligible_for_etag",
    "if_none_match_matches",
    # Policies
    "EtagPolicy",
    "Sha512EtagPolicy",
    "FunctionPolicy",
    # Middlewares
    "ASGIEtagMiddleware",
    "WSGIEtagMiddleware",
    # Exceptions
    "ShallowEtagError",
    "CaptureBufferMissingError",
)
