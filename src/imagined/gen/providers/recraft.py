"""Recraft image-generation backend over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..provider import ImageProvider, ProviderError
from ..types import ImageGenRequest
from ...styles import StyleId

logger = logging.getLogger(__name__)

RECRAFT_BASE_URL = "https://external.api.recraft.ai/v1"


class RecraftProvider(ImageProvider):
    requires_credential = True

    def __init__(
        self,
        api_key: str,
        base_url: str = RECRAFT_BASE_URL,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    @property
    def provider_id(self) -> str:
        return "recraft"

    def build_payload(self, req: ImageGenRequest) -> dict[str, Any]:
        width, height = req.size
        payload: dict[str, Any] = {
            "prompt": req.prompt,
            "model": req.model,
            "n": 1,
            "response_format": "url",
            "size": f"{width}x{height}",
        }
        if isinstance(req.style, StyleId):
            payload["style_id"] = req.style.style_id
        elif req.style is not None:
            payload["style"] = req.style.style
            if req.style.substyle:
                payload["substyle"] = req.style.substyle
        return payload

    def submit(self, req: ImageGenRequest) -> str:
        """Request a generation and return the URL of the result.

        Raises:
            ProviderError: On transport errors, non-success status or a malformed body.
        """
        payload = self.build_payload(req)
        logger.info(
            f"Generating image with Recraft: prompt={req.prompt!r} size={payload['size']} "
            f"model={payload['model']} style={payload.get('style_id') or payload.get('style', 'any')}"
        )
        try:
            response = self._client.post(
                f"{self._base_url}/images/generations",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Recraft API request failed: {e}") from e

        if not response.is_success:
            raise ProviderError(f"Recraft API error ({response.status_code}): {response.text}")

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid response from Recraft API - malformed JSON: {e}") from e

        try:
            url = body["data"][0]["url"]
        except (KeyError, IndexError, TypeError):
            url = None
        if not url or not isinstance(url, str):
            raise ProviderError("Invalid response from Recraft API - no image URL provided")
        logger.debug(f"Image URL: {url}")
        return url

    def download(self, url: str) -> bytes:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to download generated image: {e}") from e
        if not response.is_success:
            raise ProviderError(
                f"Failed to download generated image: HTTP {response.status_code}: "
                f"{response.reason_phrase}"
            )
        return response.content

    def generate(self, req: ImageGenRequest) -> bytes:
        return self.download(self.submit(req))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
