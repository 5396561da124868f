from __future__ import annotations

from abc import ABC, abstractmethod

from .types import ImageGenRequest


class ProviderError(Exception):
    """A backend failure, carrying a single human-readable reason."""


class ImageProvider(ABC):
    requires_credential: bool = False

    @property
    @abstractmethod
    def provider_id(self) -> str: ...

    @abstractmethod
    def generate(self, req: ImageGenRequest) -> bytes:
        """Produce the encoded image for ``req``.

        Raises:
            ProviderError: On any backend failure.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass
