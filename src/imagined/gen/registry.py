from __future__ import annotations

from .config import ConfigError, Settings
from .provider import ImageProvider
from .providers.placeholder import PlaceholderProvider
from .providers.recraft import RecraftProvider

AVAILABLE_PROVIDERS = ("placeholder", "recraft")


class ProviderRegistry:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._providers: dict[str, ImageProvider] = {}

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_provider(self, name: str) -> ImageProvider:
        if name in self._providers:
            return self._providers[name]

        provider = self._instantiate_provider(name)
        self._providers[name] = provider
        return provider

    def get_default_provider(self) -> ImageProvider:
        return self.get_provider(self._settings.provider)

    def close(self) -> None:
        for provider in self._providers.values():
            provider.close()
        self._providers.clear()

    def _instantiate_provider(self, name: str) -> ImageProvider:
        if name == "placeholder":
            return PlaceholderProvider()

        if name == "recraft":
            return RecraftProvider(
                api_key=self._settings.api_key or "",
                base_url=self._settings.base_url,
                timeout=self._settings.timeout,
            )

        raise ConfigError(
            f"Unknown provider: '{name}'. Available providers: {sorted(AVAILABLE_PROVIDERS)}"
        )
