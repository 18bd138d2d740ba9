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
