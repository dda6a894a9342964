# delivery_api/providers/platform_fee.py
import logging
from typing import Optional

from .. import config
from .auto_fee_source import AutoFeeSource, FixedAutoFeeSource

logger = logging.getLogger(__name__)


class PlatformAutoFeeSource(AutoFeeSource):
    """
    Taxa da plataforma: valor fixo até base_distance_km e um adicional por km
    rodado além disso. O teto da loja (max_delivery_fee) não se aplica aqui.
    """

    def __init__(self, fixed_fee=None, per_km_fee=None, base_distance_km=None):
        self.fixed_fee = config.PLATFORM_FIXED_DELIVERY_FEE if fixed_fee is None else float(fixed_fee)
        self.per_km_fee = config.PLATFORM_PER_KM_DELIVERY_FEE if per_km_fee is None else float(per_km_fee)
        self.base_distance_km = (
            config.PLATFORM_BASE_DISTANCE_KM if base_distance_km is None else float(base_distance_km)
        )

    def quote(self, distance_meters: float, order_value: float, logic: dict) -> float:
        distance_km = distance_meters / 1000
        delivery_fee = self.fixed_fee
        if distance_km > self.base_distance_km:
            additional_km = distance_km - self.base_distance_km
            delivery_fee += additional_km * self.per_km_fee
        return round(delivery_fee, 2)


def get_auto_fee_source(mode: Optional[str] = None) -> Optional[AutoFeeSource]:
    mode = (mode or config.AUTO_FEE_SOURCE).lower()
    if mode == "platform":
        logger.info("Usando fonte de taxa da plataforma para o modo auto.")
        return PlatformAutoFeeSource()
    if mode == "fixed":
        logger.info("Usando taxa fixa %.2f para o modo auto.", config.AUTO_FIXED_DELIVERY_FEE)
        return FixedAutoFeeSource(config.AUTO_FIXED_DELIVERY_FEE)
    if mode == "none":
        logger.warning("Nenhuma fonte de taxa para o modo auto; lojas 'auto' vão falhar no cálculo.")
        return None
    raise ValueError(f"AUTO_FEE_SOURCE inválido: {mode}")
