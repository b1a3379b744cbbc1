import anthropic

from app.services.providers import ProviderParams, TextClient


class ClaudeClient(TextClient):
    name = "anthropic"

    def __init__(self, api_key: str, model: str):
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model

    def generate(self, system_prompt: str, message: str, params: ProviderParams) -> str:
        msg = self.client.messages.create(
            model=self.model,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": message}],
        )
        return "".join(b.text for b in msg.content if getattr(b, "type", "") == "text")
