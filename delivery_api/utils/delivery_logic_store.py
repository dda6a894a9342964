# delivery_api/utils/delivery_logic_store.py
"""Leitura da lógica de entrega e da localização das lojas no Supabase (somente leitura)."""
import logging
from typing import Dict, Iterable, Optional, Tuple

from . import helpers
from ..logic.delivery_fee import delivery_logic_from_dict
from ..logic.errors import DeliveryLogicError, DeliveryLogicUnavailable

logger = logging.getLogger(__name__)

TABLE = 'shop_delivery_logic'
SHOPS_TABLE = 'shops'


def _client(client):
    return client if client is not None else helpers.supabase


def fetch_delivery_logic(shop_id: str, client=None) -> Optional[dict]:
    """Retorna a lógica de entrega da loja, ou None se não houver linha ou cliente."""
    client = _client(client)
    if client is None:
        logger.warning("Supabase indisponível, sem lógica de entrega para a loja %s", shop_id)
        return None

    logger.info(f"Buscando lógica de entrega da loja: {shop_id}")
    try:
        response = client.table(TABLE).select('*').eq('shop_id', shop_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Falha ao buscar lógica de entrega da loja {shop_id}: {e}", exc_info=True)
        raise DeliveryLogicUnavailable(f"Falha ao buscar lógica de entrega: {e}") from e

    if not response.data:
        return None
    return delivery_logic_from_dict(response.data[0], shop_id=shop_id)


def fetch_delivery_logics(shop_ids: Iterable[str], client=None) -> Dict[str, dict]:
    """
    Busca em lote; lojas sem linha simplesmente não aparecem no resultado.
    Uma linha com configuração inválida é registrada no log e descartada.
    """
    shop_ids = [str(s) for s in shop_ids if s is not None]
    client = _client(client)
    if client is None or not shop_ids:
        return {}

    try:
        response = client.table(TABLE).select('*').in_('shop_id', shop_ids).execute()
    except Exception as e:
        logger.error(f"Falha ao buscar lógicas de entrega em lote: {e}", exc_info=True)
        raise DeliveryLogicUnavailable(f"Falha ao buscar lógicas de entrega: {e}") from e

    logics = {}
    for row in response.data or []:
        shop_id = str(row.get('shop_id'))
        try:
            logics[shop_id] = delivery_logic_from_dict(row, shop_id=shop_id)
        except DeliveryLogicError as e:
            logger.warning(f"Lógica de entrega inválida para a loja {shop_id}, ignorada: {e}")
    return logics


def fetch_shop_location(shop_id: str, client=None) -> Optional[Tuple[float, float]]:
    client = _client(client)
    if client is None:
        return None

    try:
        response = client.table(SHOPS_TABLE).select('latitude, longitude').eq('id', shop_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Falha ao buscar localização da loja {shop_id}: {e}", exc_info=True)
        raise DeliveryLogicUnavailable(f"Falha ao buscar loja: {e}") from e

    if not response.data:
        return None
    row = response.data[0]
    if row.get('latitude') is None or row.get('longitude') is None:
        return None
    return row['latitude'], row['longitude']
