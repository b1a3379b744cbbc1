from openai import OpenAI

from app.services.providers import ProviderParams, TextClient


class OpenAIClient(TextClient):
    name = "openai"

    def __init__(self, api_key: str, model: str):
        self.client = OpenAI(api_key=api_key)
        self.model = model

    def generate(self, system_prompt: str, message: str, params: ProviderParams) -> str:
        resp = self.client.responses.create(
            model=self.model,
            instructions=system_prompt,
            input=message,
            max_output_tokens=params.max_tokens,
            temperature=params.temperature,
        )
        return resp.output_text or ""
