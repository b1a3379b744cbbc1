import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Tuple

from app.services.errors import ProviderUnavailable

logger = logging.getLogger("providers")


@dataclass(frozen=True)
class ProviderParams:
    max_tokens: int = 1000
    temperature: float = 0.7


class TextClient(ABC):
    """One text-generation backend. Implementations are blocking SDK calls."""

    name: str = ""

    @abstractmethod
    def generate(self, system_prompt: str, message: str, params: ProviderParams) -> str:
        ...


class ProviderRegistry:
    """
    Lookup table from model identifier to backend.

    Unknown identifiers fall back to the default entry. Every backend failure,
    including an empty answer, is reported as ProviderUnavailable; nothing is
    retried here.
    """

    def __init__(self, default: str, params: ProviderParams | None = None):
        self.default = default
        self.params = params or ProviderParams()
        self._clients: Dict[str, TextClient] = {}

    def register(self, model_id: str, client: TextClient) -> None:
        self._clients[model_id] = client

    def models(self) -> list[str]:
        return list(self._clients)

    def resolve(self, model_id: str | None) -> Tuple[str, TextClient]:
        if model_id and model_id in self._clients:
            return model_id, self._clients[model_id]
        if model_id:
            logger.info("unknown model=%s, falling back to %s", model_id, self.default)
        return self.default, self._clients[self.default]

    async def generate(
        self,
        model_id: str | None,
        system_prompt: str,
        message: str,
        params: ProviderParams | None = None,
    ) -> Tuple[str, str]:
        """Returns (model_used, text)."""
        model_used, client = self.resolve(model_id)
        try:
            text = await asyncio.to_thread(client.generate, system_prompt, message, params or self.params)
        except Exception as e:
            logger.warning("model=%s | backend=%s failed: %r", model_used, client.name, e)
            raise ProviderUnavailable() from e

        if not text or not text.strip():
            logger.warning("model=%s | backend=%s returned an empty answer", model_used, client.name)
            raise ProviderUnavailable()
        return model_used, text
