# delivery_api/providers/auto_fee_source.py
from abc import ABC, abstractmethod


class AutoFeeSource(ABC):
    """Fonte da taxa base das lojas em modo 'auto'."""

    @abstractmethod
    def quote(self, distance_meters: float, order_value: float, logic: dict) -> float:
        """Retorna a taxa base (sem sobretaxa) para a distância informada."""
        raise NotImplementedError()


class FixedAutoFeeSource(AutoFeeSource):
    """Cobra sempre a mesma taxa, independente da distância."""

    def __init__(self, fee: float):
        if fee < 0:
            raise ValueError("Taxa fixa não pode ser negativa")
        self.fee = float(fee)

    def quote(self, distance_meters: float, order_value: float, logic: dict) -> float:
        return self.fee
