# delivery_api/logic/order_totals.py
import logging
from typing import Dict, Iterable, List, Optional, TypedDict

from .delivery_fee import (
    calculate_delivery_fee,
    calculate_distance,
    is_out_of_zone,
    resolve_delivery_fee,
    validate_coordinates,
    validate_order_value,
)
from .errors import DeliveryLogicError, InvalidCoordinate, OrderBelowMinimum

logger = logging.getLogger(__name__)


class OrderTotals(TypedDict):
    subtotal_cents: int
    delivery_fee_cents: int
    surcharge_cents: int
    total_cents: int
    distance_meters: float
    free_delivery_applied: bool
    out_of_zone: bool


class ShopQuote(TypedDict):
    shop_id: str
    distance_meters: Optional[float]
    delivery_fee: Optional[float]
    out_of_zone: bool


def _to_cents(value: float) -> int:
    return int(round(value * 100))


def _price_cents(value, item_id) -> int:
    if value is None or isinstance(value, bool):
        raise DeliveryLogicError(f"Preço inválido para o item {item_id}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise DeliveryLogicError(f"Preço inválido para o item {item_id}: {value!r}") from None
    if not number.is_integer() or number < 0:
        raise DeliveryLogicError(f"Preço do item {item_id} deve ser um inteiro não negativo em centavos")
    return int(number)


def calculate_subtotal_cents(items: Iterable[dict], prices_cents: Dict[str, int]) -> int:
    """Soma preço x quantidade. Itens que não existem mais no cardápio da loja são ignorados."""
    subtotal_cents = 0
    for item in items:
        if not isinstance(item, dict):
            raise DeliveryLogicError(f"Item inválido: esperado objeto com merchant_item_id e quantity, recebido {item!r}")
        item_id = item.get('merchant_item_id') or item.get('item_id')
        quantity = item.get('quantity')
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise DeliveryLogicError(f"Quantidade inválida para o item {item_id}: {quantity!r}")
        price_cents = prices_cents.get(item_id)
        if price_cents is None:
            logger.warning(f"Item {item_id} não encontrado, ignorado no subtotal")
            continue
        subtotal_cents += _price_cents(price_cents, item_id) * quantity
    return subtotal_cents


def calculate_order_totals(items, prices_cents, shop_coords, address_coords, logic,
                           auto_fee_source=None) -> OrderTotals:
    """
    Totais do checkout em centavos, no formato gravado no pedido.

    shop_coords e address_coords são pares (latitude, longitude). Os valores
    da lógica de entrega estão na unidade monetária cheia, por isso o
    subtotal é convertido antes de aplicar as regras.

    Raises:
        OrderBelowMinimum: subtotal abaixo de least_order_value.
        InvalidCoordinate: coordenadas da loja ou do endereço inválidas.
    """
    subtotal_cents = calculate_subtotal_cents(items, prices_cents)
    subtotal = subtotal_cents / 100

    distance_meters = calculate_distance(address_coords[0], address_coords[1], shop_coords[0], shop_coords[1])

    if logic is not None:
        valid, message = validate_order_value(subtotal, logic)
        if not valid:
            raise OrderBelowMinimum(message, logic['least_order_value'])

    breakdown = resolve_delivery_fee(subtotal, distance_meters, logic, auto_fee_source)

    delivery_fee_cents = _to_cents(breakdown['base_fee'])
    # Parte da taxa final que é sobretaxa (zero em entrega grátis, menor se o teto cortou)
    surcharge_cents = max(_to_cents(breakdown['final_fee']) - delivery_fee_cents, 0)

    return OrderTotals(
        subtotal_cents=subtotal_cents,
        delivery_fee_cents=delivery_fee_cents,
        surcharge_cents=surcharge_cents,
        total_cents=subtotal_cents + delivery_fee_cents + surcharge_cents,
        distance_meters=breakdown['distance_meters'],
        free_delivery_applied=breakdown['free_delivery_applied'],
        out_of_zone=breakdown['out_of_zone'],
    )


def quote_shops(shops: Iterable[dict], consumer_latitude, consumer_longitude,
                logics: Dict[str, dict], auto_fee_source=None) -> List[ShopQuote]:
    """
    Taxa de entrega exibida na listagem de lojas (sem sobretaxa de pedido).

    Lojas sem coordenadas, sem lógica de entrega, com lógica inválida ou em
    modo 'auto' sem fonte de taxa ficam com delivery_fee None. Lojas sem id
    são ignoradas.
    """
    # Coordenada inválida do cliente é erro do chamador, não da loja
    consumer_latitude, consumer_longitude = validate_coordinates(consumer_latitude, consumer_longitude)

    quotes = []
    for shop in shops:
        if not isinstance(shop, dict) or shop.get('id') is None:
            logger.warning(f"Loja sem id ignorada na listagem: {shop!r}")
            continue
        shop_id = str(shop['id'])
        quote = ShopQuote(shop_id=shop_id, distance_meters=None, delivery_fee=None, out_of_zone=False)
        logic = logics.get(shop_id)

        if shop.get('latitude') is None or shop.get('longitude') is None:
            logger.warning(f"Loja {shop_id} ({shop.get('name')}) sem coordenadas")
            quotes.append(quote)
            continue

        try:
            distance_meters = calculate_distance(
                consumer_latitude, consumer_longitude, shop['latitude'], shop['longitude']
            )
        except InvalidCoordinate as e:
            logger.warning(f"Loja {shop_id} com coordenadas inválidas: {e}")
            quotes.append(quote)
            continue
        quote['distance_meters'] = round(distance_meters, 2)

        if logic is None:
            logger.warning(f"Nenhuma lógica de entrega encontrada para a loja {shop_id} ({shop.get('name')})")
            quotes.append(quote)
            continue

        try:
            if logic['distance_mode'] == 'custom':
                quote['delivery_fee'] = calculate_delivery_fee(distance_meters, logic)
            elif auto_fee_source is not None:
                quote['delivery_fee'] = round(float(auto_fee_source.quote(distance_meters, 0.0, logic)), 2)
            quote['out_of_zone'] = is_out_of_zone(distance_meters, logic)
        except DeliveryLogicError as e:
            # Configuração quebrada de uma loja não derruba a listagem inteira
            logger.warning(f"Lógica de entrega inválida para a loja {shop_id}: {e}")
            quote['delivery_fee'] = None
            quote['out_of_zone'] = False
            quotes.append(quote)
            continue

        logger.info(f"Loja {shop_id}: distância={distance_meters:.0f}m, taxa={quote['delivery_fee']}")
        quotes.append(quote)
    return quotes
