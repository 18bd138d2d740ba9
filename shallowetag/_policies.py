from __future__ import annotations

import abc
import typing as t
from dataclasses import dataclass

from shallowetag._core._states import generate_sha512_etag, is_eligible_for_etag
from shallowetag._core.models import Request, Response


class EtagPolicy(abc.ABC):
    """
    Strategy deciding which responses get an ETag and how it is computed.
    """

    @abc.abstractmethod
    def is_eligible(self, request: Request, response: Response) -> bool:
        pass

    @abc.abstractmethod
    def generate_etag(self, body: bytes) -> str:
        pass


@dataclass
class Sha512EtagPolicy(EtagPolicy):
    """
    Default policy: responses below 300 without "no-store" get a SHA-512 ETag.

    Set `write_weak_etag` to emit weak validators (W/"...") instead of strong ones.
    The flag only changes the prefix; the digest is always computed from the
    exact body bytes.
    """

    write_weak_etag: bool = False

    def is_eligible(self, request: Request, response: Response) -> bool:
        return is_eligible_for_etag(request, response)

    def generate_etag(self, body: bytes) -> str:
        return generate_sha512_etag(body, weak=self.write_weak_etag)


@dataclass
class FunctionPolicy(EtagPolicy):
    """
    Policy assembled from two plain callables.

    Example:
        ```python
        def only_json(request, response):
            return is_eligible_for_etag(request, response) and response.headers.get(
                "Content-Type", ""
            ).startswith("application/json")

        policy = FunctionPolicy(eligibility=only_json)
        ```
    """

    eligibility: t.Callable[[Request, Response], bool] = is_eligible_for_etag
    etag_generator: t.Callable[[bytes], str] = generate_sha512_etag

    def is_eligible(self, request: Request, response: Response) -> bool:
        return self.eligibility(request, response)

    def generate_etag(self, body: bytes) -> str:
        return self.etag_generator(body)
