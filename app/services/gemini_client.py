from google import genai
from google.genai import types

from app.services.providers import ProviderParams, TextClient


class GeminiClient(TextClient):
    name = "gemini"

    def __init__(self, api_key: str, model: str):
        self.client = genai.Client(api_key=api_key)
        self.model = model

    def generate(self, system_prompt: str, message: str, params: ProviderParams) -> str:
        resp = self.client.models.generate_content(
            model=self.model,
            contents=message,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                max_output_tokens=params.max_tokens,
                temperature=params.temperature,
            ),
        )
        return resp.text or ""
