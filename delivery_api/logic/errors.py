# delivery_api/logic/errors.py


class DeliveryLogicError(ValueError):
    """Erro base de validação do cálculo de entrega."""


class InvalidCoordinate(DeliveryLogicError):
    """Latitude/longitude ausente, não numérica, NaN ou fora do intervalo."""


class InvalidTierConfig(DeliveryLogicError):
    """Faixas de distância fora de ordem estritamente crescente ou com valores inválidos."""


class AutoFeeSourceRequired(DeliveryLogicError):
    """Loja em modo 'auto' sem uma fonte de taxa configurada."""


class OrderBelowMinimum(DeliveryLogicError):
    """Pedido abaixo do valor mínimo absoluto (least_order_value) da loja."""

    def __init__(self, message, least_order_value=None):
        super().__init__(message)
        self.least_order_value = least_order_value


class DeliveryLogicUnavailable(RuntimeError):
    """Falha ao ler a configuração de entrega no Supabase."""
