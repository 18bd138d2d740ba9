__all__ = ("ShallowEtagError", "CaptureBufferMissingError")


class ShallowEtagError(Exception): ...


class CaptureBufferMissingError(ShallowEtagError, RuntimeError):
    """
    Raised when a response was judged eligible for an ETag but its capture
    buffer is gone at finalization time.

    This points at a bug in how the buffer was installed or finalized, not at
    a bad request.
    """
