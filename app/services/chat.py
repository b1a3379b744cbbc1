import hashlib
import logging
from dataclasses import dataclass

from app.db.models import ChatRecord
from app.services.cache import ResponseCache
from app.services.errors import InvalidRequest
from app.services.ledger import Ledger
from app.services.providers import ProviderRegistry
from app.utils.time import now_local

logger = logging.getLogger("chat")

PROMPT_VERSION = "oab_penal_v3"

SYSTEM_PROMPT = """
Você é o OABOT, especialista em segunda fase penal do Exame de Ordem.

FOCO PRINCIPAL:
1. Habeas Corpus (Art. 647-667 CPP)
2. Apelação (Art. 593-603 CPP)
3. Recurso em Sentido Estrito - RESE (Art. 581-592 CPP)
4. Resposta à Acusação (Art. 396-A CPP)

SEMPRE:
- Cite artigos específicos do CPP e CF
- Use jurisprudência do STF e STJ
- Estruture as peças com clareza
- Indique prazos processuais
""".strip()


@dataclass(frozen=True)
class ChatResult:
    response: str
    credits_remaining: int
    model_used: str
    cached: bool = False

    def to_dict(self) -> dict:
        out = {
            "response": self.response,
            "credits_remaining": self.credits_remaining,
            "model_used": self.model_used,
        }
        if self.cached:
            out["cached"] = True
        return out


class ChatOrchestrator:
    def __init__(self, ledger: Ledger, providers: ProviderRegistry, cache: ResponseCache, tz: str):
        self.ledger = ledger
        self.providers = providers
        self.cache = cache
        self.tz = tz

    async def ask(
        self,
        email: str,
        message: str,
        model: str | None = None,
        use_cache: bool = True,
    ) -> ChatResult:
        if not isinstance(email, str) or not isinstance(message, str):
            raise InvalidRequest("Email e mensagem devem ser texto")
        if model is not None and not isinstance(model, str):
            raise InvalidRequest("Modelo deve ser texto")
        if not email or not message:
            raise InvalidRequest("Email e mensagem obrigatórios")

        model_used, _ = self.providers.resolve(model)

        # 1) cache hit: no provider call, no charge
        if use_cache:
            cached = self.cache.get(model_used, message)
            if cached is not None:
                remaining = await self.ledger.peek(email)
                logger.info("email=%s | model=%s | cache hit", email, model_used)
                return ChatResult(cached, remaining, model_used, cached=True)

        # 2) may this proceed
        await self.ledger.authorize(email)

        # 3) dispatch, no lock held
        prompt_hash = hashlib.sha256(SYSTEM_PROMPT.encode("utf-8")).hexdigest()[:12]
        logger.info(
            "email=%s | model=%s | prompt=%s | prompt_hash=%s | user_input='%s'",
            email,
            model_used,
            PROMPT_VERSION,
            prompt_hash,
            message[:300].replace("\n", " "),
        )
        model_used, answer = await self.providers.generate(model_used, SYSTEM_PROMPT, message)

        # 4) one action: debit + history; a concurrent request may have spent
        # the last credit meanwhile, in which case this raises and nothing is kept
        record = ChatRecord(
            email=email,
            question=message,
            answer=answer,
            model_used=model_used,
            timestamp=now_local(self.tz),
        )
        remaining = await self.ledger.consume(email, record)

        self.cache.put(model_used, message, answer)
        return ChatResult(answer, remaining, model_used)
