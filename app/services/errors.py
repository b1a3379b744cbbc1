# domain errors; each one is scoped to a single request

class ServiceError(Exception):
    status = 500
    message = "Erro no processamento"

    def __init__(self, message: str | None = None, **extra):
        super().__init__(message or self.message)
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": str(self), **self.extra}


class InvalidRequest(ServiceError):
    status = 400
    message = "Requisição inválida"


class InsufficientCredits(ServiceError):
    status = 403
    message = "Sem créditos disponíveis"

    def __init__(self, message: str | None = None, upgrade_url: str = "/pricing"):
        super().__init__(message, upgrade_url=upgrade_url)


class AccountNotFound(ServiceError):
    status = 404
    message = "Conta não encontrada"


class ProviderUnavailable(ServiceError):
    status = 500
    message = "Erro no processamento"


class InvalidSignature(ServiceError):
    status = 400
    message = "Webhook Error: assinatura inválida"


class CouponNotFound(ServiceError):
    status = 400
    message = "Cupom inválido ou expirado"


class CouponExhausted(ServiceError):
    status = 400
    message = "Cupom inválido ou expirado"
