"""Erros de domínio do motor de estado dos restaurantes.

Cada erro carrega o status HTTP equivalente e um ``kind`` estável, para que a
camada HTTP devolva uma mensagem exibível e um identificador verificável por
máquina sem conhecer as regras de negócio.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    status_code = 400
    kind = "domain_error"
    default_message = "Erro ao processar a solicitação."

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "kind": self.kind, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


# 400
class ValidationError(DomainError):
    status_code = 400
    kind = "validation_error"
    default_message = "Dados inválidos."


class InvalidSelection(ValidationError):
    kind = "invalid_selection"
    default_message = "Seleção inválida para o produto."

    def __init__(self, message: str | None = None, *, group: str | None = None, details: Any = None) -> None:
        self.group = group
        if details is None and group is not None:
            details = {"group": group}
        super().__init__(message, details=details)


class BelowMinimumOrder(ValidationError):
    kind = "below_minimum_order"
    default_message = "Pedido abaixo do valor mínimo da loja."


class BillingNotConfigured(ValidationError):
    kind = "billing_not_configured"
    default_message = "Gateway de pagamento não configurado."


# 401
class Unauthorized(DomainError):
    status_code = 401
    kind = "unauthorized"
    default_message = "Acesso não autorizado."


class InvalidWebhookSignature(Unauthorized):
    kind = "invalid_webhook_signature"
    default_message = "Assinatura do webhook inválida."


# 402
class SubscriptionInactive(DomainError):
    status_code = 402
    kind = "subscription_inactive"
    default_message = "Restaurante com assinatura inativa no momento."


# 404
class NotFound(DomainError):
    status_code = 404
    kind = "not_found"
    default_message = "Registro não encontrado."


class TenantNotFound(NotFound):
    kind = "tenant_not_found"
    default_message = "Restaurante não encontrado."


class PlanNotFound(NotFound):
    kind = "plan_not_found"
    default_message = "Plano não encontrado ou inativo."


class ProductNotFound(NotFound):
    kind = "product_not_found"
    default_message = "Produto não encontrado no cardápio."


class OrderNotFound(NotFound):
    kind = "order_not_found"
    default_message = "Pedido não encontrado."


# 409
class Conflict(DomainError):
    status_code = 409
    kind = "conflict"
    default_message = "Conflito de estado."


class CheckoutMismatch(Conflict):
    kind = "checkout_mismatch"
    default_message = "Checkout não corresponde ao pagamento pendente."


class InvalidTransition(Conflict):
    kind = "invalid_transition"
    default_message = "Transição de status inválida."


class TenantNotAcceptingOrders(Conflict):
    kind = "tenant_not_accepting_orders"
    default_message = "Loja fechada no momento para novos pedidos."


class SlugTaken(Conflict):
    kind = "slug_taken"
    default_message = "Slug já está em uso."


class PlanLocked(Conflict):
    kind = "plan_locked"
    default_message = "Plano com fatura paga só pode ser ativado ou desativado."


class StaleDocumentError(Conflict):
    kind = "stale_document"
    default_message = "O documento foi alterado por outra requisição. Tente novamente."


# 5xx / upstream
class UpstreamFailure(DomainError):
    status_code = 502
    kind = "upstream_failure"
    default_message = "Falha no provedor externo."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message, details=details)


class CheckoutCreationFailed(UpstreamFailure):
    kind = "checkout_creation_failed"
    default_message = "Erro ao iniciar a contratação no gateway de pagamento."


class StoreUnavailable(DomainError):
    status_code = 503
    kind = "store_unavailable"
    default_message = "Armazenamento indisponível no momento."


class OnboardingNotConfigured(DomainError):
    status_code = 503
    kind = "onboarding_not_configured"
    default_message = "Onboarding em produção requer ONBOARDING_API_TOKEN configurado."


class AdminNotConfigured(DomainError):
    status_code = 503
    kind = "admin_not_configured"
    default_message = "Administração em produção requer ADMIN_API_TOKEN configurado."
