from dataclasses import dataclass, field
import os
from dotenv import load_dotenv

load_dotenv()

def _parse_price_ids() -> dict[str, str]:
    return {
        "basic": os.getenv("STRIPE_PRICE_BASIC", ""),
        "pro": os.getenv("STRIPE_PRICE_PRO", ""),
        "premium": os.getenv("STRIPE_PRICE_PREMIUM", ""),
    }

@dataclass(frozen=True)
class Settings:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    # AI backends
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    claude_api_key: str = os.getenv("CLAUDE_API_KEY", "")
    claude_model: str = os.getenv("CLAUDE_MODEL", "claude-3-opus-20240229")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-1.5-pro")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "1000"))
    temperature: float = float(os.getenv("TEMPERATURE", "0.7"))

    free_credits: int = int(os.getenv("FREE_CREDITS", "5"))
    cache_prefix_len: int = int(os.getenv("CACHE_PREFIX_LEN", "50"))
    cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))
    use_fake_db: bool = os.getenv("USE_FAKE_DB", "1") == "1"
    tz: str = os.getenv("TZ", "America/Sao_Paulo")

    # Postgres
    pg_host: str = os.getenv("PG_HOST", "localhost")
    pg_port: int = int(os.getenv("PG_PORT", "5432"))
    pg_user: str = os.getenv("PG_USER", "postgres")
    pg_password: str = os.getenv("PG_PASSWORD", "")
    pg_database: str = os.getenv("PG_DATABASE", "postgres")
    pg_sslmode: str = os.getenv("PG_SSLMODE", "disable")

    # Stripe
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    stripe_success_url: str = os.getenv("STRIPE_SUCCESS_URL", "https://oabot.com.br/success")
    stripe_cancel_url: str = os.getenv("STRIPE_CANCEL_URL", "https://oabot.com.br/cancel")
    stripe_price_ids: dict[str, str] = field(default_factory=_parse_price_ids)

    @property
    def pg_dsn(self) -> str:
        return (
            f"postgresql://{self.pg_user}:{self.pg_password}"
            f"@{self.pg_host}:{self.pg_port}/{self.pg_database}"
            f"?sslmode={self.pg_sslmode}"
        )

settings = Settings()
