# delivery_api/logic/delivery_fee.py
"""
Cálculo da taxa de entrega por loja.

Camadas aplicadas, nesta ordem:
  1. valor do pedido: sobretaxa para pedidos pequenos (minimum_order_value);
  2. entrega grátis: subtotal >= free_delivery_threshold e distância <= free_delivery_radius;
  3. distância: faixas (modo 'custom') ou fonte de taxa injetada (modo 'auto').

Tudo aqui é função pura sobre um dict de configuração (o mesmo formato da
linha de shop_delivery_logic) e dois números. Nada é lido do banco.
"""
import math
import logging
from typing import List, Optional, Tuple, TypedDict

from .. import config
from .errors import (
    AutoFeeSourceRequired,
    DeliveryLogicError,
    InvalidCoordinate,
    InvalidTierConfig,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000  # Raio da Terra em metros

DISTANCE_MODES = ('auto', 'custom')


class DistanceTier(TypedDict):
    max_distance: float
    fee: float


class DeliveryLogicConfig(TypedDict):
    shop_id: Optional[str]
    minimum_order_value: float
    small_order_surcharge: float
    least_order_value: float
    distance_mode: str
    distance_tiers: List[DistanceTier]
    max_delivery_fee: float
    beyond_tier_fee_per_unit: float
    beyond_tier_distance_unit: float
    free_delivery_threshold: float
    free_delivery_radius: float


class FeeBreakdown(TypedDict):
    base_fee: float
    surcharge: float
    final_fee: float
    free_delivery_applied: bool
    out_of_zone: bool
    distance_meters: float
    distance_mode: str
    calculation_method: str


# Nome no banco -> nome usado pelo front (camelCase)
_FIELD_ALIASES = {
    'minimum_order_value': 'minimumOrderValue',
    'small_order_surcharge': 'smallOrderSurcharge',
    'least_order_value': 'leastOrderValue',
    'distance_mode': 'distanceMode',
    'distance_tiers': 'distanceTiers',
    'max_delivery_fee': 'maxDeliveryFee',
    'beyond_tier_fee_per_unit': 'beyondTierFeePerUnit',
    'beyond_tier_distance_unit': 'beyondTierDistanceUnit',
    'free_delivery_threshold': 'freeDeliveryThreshold',
    'free_delivery_radius': 'freeDeliveryRadius',
}

_DEFAULTS = {
    'minimum_order_value': config.DEFAULT_MINIMUM_ORDER_VALUE,
    'small_order_surcharge': config.DEFAULT_SMALL_ORDER_SURCHARGE,
    'least_order_value': config.DEFAULT_LEAST_ORDER_VALUE,
    'distance_mode': config.DEFAULT_DISTANCE_MODE,
    'max_delivery_fee': config.DEFAULT_MAX_DELIVERY_FEE,
    'beyond_tier_fee_per_unit': config.DEFAULT_BEYOND_TIER_FEE_PER_UNIT,
    'beyond_tier_distance_unit': config.DEFAULT_BEYOND_TIER_DISTANCE_UNIT,
    'free_delivery_threshold': config.DEFAULT_FREE_DELIVERY_THRESHOLD,
    'free_delivery_radius': config.DEFAULT_FREE_DELIVERY_RADIUS,
}


def _to_number(value, field: str) -> float:
    if value is None or isinstance(value, bool):
        raise DeliveryLogicError(f"Campo '{field}' deve ser numérico")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise DeliveryLogicError(f"Campo '{field}' deve ser numérico") from None
    if not math.isfinite(number):
        raise DeliveryLogicError(f"Campo '{field}' deve ser um número finito")
    return number


def _non_negative(value, field: str) -> float:
    number = _to_number(value, field)
    if number < 0:
        raise DeliveryLogicError(f"Campo '{field}' não pode ser negativo")
    return number


def _coordinate(value, field: str, limit: float) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidCoordinate(f"Coordenada '{field}' ausente ou inválida")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"Coordenada '{field}' não é numérica: {value!r}") from None
    if not math.isfinite(number):
        raise InvalidCoordinate(f"Coordenada '{field}' não é um número finito")
    if abs(number) > limit:
        raise InvalidCoordinate(f"Coordenada '{field}' fora do intervalo [-{limit:g}, {limit:g}]")
    return number


def validate_coordinates(latitude, longitude) -> Tuple[float, float]:
    """Converte e valida um par (latitude, longitude) em graus."""
    return _coordinate(latitude, 'latitude', 90), _coordinate(longitude, 'longitude', 180)


def calculate_distance(lat1, lon1, lat2, lon2) -> float:
    """Calcula a distância em linha reta (em metros) entre duas coordenadas usando a fórmula de Haversine."""
    lat1 = _coordinate(lat1, 'lat1', 90)
    lon1 = _coordinate(lon1, 'lon1', 180)
    lat2 = _coordinate(lat2, 'lat2', 90)
    lon2 = _coordinate(lon2, 'lon2', 180)

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    # a pode passar de 1 por erro de arredondamento em pontos antipodais
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def validate_tiers(tiers) -> List[DistanceTier]:
    """
    Normaliza e valida as faixas de distância.
    As faixas precisam estar em ordem estritamente crescente de max_distance;
    não reordenamos em silêncio uma configuração salva errada.
    """
    if tiers is None:
        return []
    if not isinstance(tiers, (list, tuple)):
        raise InvalidTierConfig("distance_tiers deve ser uma lista")

    normalized = []
    previous = None
    for index, tier in enumerate(tiers):
        if not isinstance(tier, dict):
            raise InvalidTierConfig(f"Faixa {index} inválida: esperado objeto com max_distance e fee")
        max_distance = tier.get('max_distance', tier.get('maxDistance'))
        fee = tier.get('fee')
        try:
            max_distance = _non_negative(max_distance, f'distance_tiers[{index}].max_distance')
            fee = _non_negative(fee, f'distance_tiers[{index}].fee')
        except DeliveryLogicError as e:
            raise InvalidTierConfig(str(e)) from None
        if previous is not None and max_distance <= previous:
            raise InvalidTierConfig(
                f"Faixas devem ser estritamente crescentes: {max_distance:g}m após {previous:g}m"
            )
        previous = max_distance
        normalized.append({"max_distance": max_distance, "fee": fee})
    return normalized


def default_delivery_logic(shop_id: Optional[str] = None) -> DeliveryLogicConfig:
    """Configuração criada automaticamente para toda loja nova."""
    logic = dict(_DEFAULTS)
    logic['shop_id'] = shop_id
    logic['distance_tiers'] = validate_tiers(config.DEFAULT_DISTANCE_TIERS)
    return logic


def delivery_logic_from_dict(data: dict, shop_id: Optional[str] = None) -> DeliveryLogicConfig:
    """
    Monta a configuração a partir de uma linha do Supabase ou do corpo de uma requisição.

    Aceita chaves snake_case (banco) ou camelCase (front). Campos ausentes ou
    nulos recebem os valores padrão; zero é um valor válido e é mantido.
    """
    if not isinstance(data, dict):
        raise DeliveryLogicError("Configuração de entrega deve ser um objeto")

    def lookup(field):
        value = data.get(field)
        if value is None:
            value = data.get(_FIELD_ALIASES[field])
        return value

    logic = {'shop_id': shop_id or data.get('shop_id') or data.get('shopId')}
    for field, default in _DEFAULTS.items():
        value = lookup(field)
        if value is None:
            logic[field] = default
        elif field == 'distance_mode':
            logic[field] = str(value).strip().lower()
        else:
            logic[field] = _to_number(value, field)

    if logic['distance_mode'] not in DISTANCE_MODES:
        raise DeliveryLogicError(f"distance_mode inválido: {logic['distance_mode']}")

    tiers = lookup('distance_tiers')
    if tiers is None:
        tiers = config.DEFAULT_DISTANCE_TIERS
    logic['distance_tiers'] = validate_tiers(tiers)
    return logic


def validate_delivery_logic(logic: DeliveryLogicConfig) -> List[str]:
    """Retorna a lista de problemas da configuração (vazia se estiver válida)."""
    errors = []
    try:
        tiers = validate_tiers(logic.get('distance_tiers'))
    except InvalidTierConfig as e:
        errors.append(str(e))
        tiers = None

    if logic.get('distance_mode') not in DISTANCE_MODES:
        errors.append(f"distance_mode deve ser um de {', '.join(DISTANCE_MODES)}")
    if logic.get('distance_mode') == 'custom' and tiers is not None and not tiers:
        errors.append("Modo 'custom' exige pelo menos uma faixa de distância")

    if logic['minimum_order_value'] <= 0:
        errors.append("minimum_order_value deve ser maior que zero")
    if logic['least_order_value'] <= 0:
        errors.append("least_order_value deve ser maior que zero")
    if logic['least_order_value'] > logic['minimum_order_value']:
        errors.append("least_order_value não pode ser maior que minimum_order_value")
    if logic['small_order_surcharge'] < 0:
        errors.append("small_order_surcharge não pode ser negativo")
    if logic['max_delivery_fee'] <= 0:
        errors.append("max_delivery_fee deve ser maior que zero")
    if logic['beyond_tier_fee_per_unit'] < 0:
        errors.append("beyond_tier_fee_per_unit não pode ser negativo")
    if logic['beyond_tier_distance_unit'] <= 0:
        errors.append("beyond_tier_distance_unit deve ser maior que zero")
    if logic['free_delivery_threshold'] < 0:
        errors.append("free_delivery_threshold não pode ser negativo")
    if logic['free_delivery_radius'] < 0:
        errors.append("free_delivery_radius não pode ser negativo")
    return errors


def calculate_order_surcharge(order_value, logic: DeliveryLogicConfig) -> float:
    """Sobretaxa de pedido pequeno."""
    if _non_negative(order_value, 'subtotal') < logic['minimum_order_value']:
        return logic['small_order_surcharge']
    return 0.0


def validate_order_value(order_value, logic: DeliveryLogicConfig) -> Tuple[bool, Optional[str]]:
    if _non_negative(order_value, 'subtotal') < logic['least_order_value']:
        return False, f"Valor mínimo dos itens é {logic['least_order_value']:.0f}"
    return True, None


def check_free_delivery(order_value, distance_meters, logic: DeliveryLogicConfig) -> bool:
    return (
        _non_negative(order_value, 'subtotal') >= logic['free_delivery_threshold']
        and _non_negative(distance_meters, 'distance_meters') <= logic['free_delivery_radius']
    )


def is_out_of_zone(distance_meters, logic: DeliveryLogicConfig) -> bool:
    """True quando a distância passa da última faixa configurada."""
    tiers = validate_tiers(logic.get('distance_tiers'))
    if not tiers:
        return False
    return _non_negative(distance_meters, 'distance_meters') > tiers[-1]['max_distance']


def _tier_fee(distance: float, logic: DeliveryLogicConfig) -> Tuple[float, str]:
    tiers = validate_tiers(logic.get('distance_tiers'))
    if not tiers:
        raise InvalidTierConfig("Nenhuma faixa de distância configurada")

    max_fee = logic['max_delivery_fee']
    # Distância exatamente no limite usa a própria faixa (<=)
    for tier in tiers:
        if distance <= tier['max_distance']:
            return min(tier['fee'], max_fee), 'distance_tiers'

    unit = logic['beyond_tier_distance_unit']
    if unit <= 0:
        raise DeliveryLogicError("beyond_tier_distance_unit deve ser maior que zero")

    last_tier = tiers[-1]
    extra_units = math.ceil((distance - last_tier['max_distance']) / unit)
    total_fee = last_tier['fee'] + extra_units * logic['beyond_tier_fee_per_unit']
    return min(total_fee, max_fee), 'beyond_tier'


def calculate_delivery_fee(distance_meters, logic: DeliveryLogicConfig) -> float:
    """Taxa apenas pela distância (faixas + adicional além da última faixa), limitada a max_delivery_fee."""
    fee, _ = _tier_fee(_non_negative(distance_meters, 'distance_meters'), logic)
    return round(fee, 2)


def calculate_total_delivery_fee(order_value, distance_meters, logic: DeliveryLogicConfig,
                                 auto_fee_source=None) -> FeeBreakdown:
    """
    Cálculo completo da taxa de entrega com todas as camadas.

    Args:
        order_value: subtotal do pedido (mesma unidade monetária da configuração).
        distance_meters: distância loja -> cliente em metros.
        logic: configuração da loja (ver delivery_logic_from_dict).
        auto_fee_source: fonte de taxa (providers.auto_fee_source.AutoFeeSource)
            usada quando distance_mode == 'auto'.

    Returns:
        FeeBreakdown. Em entrega grátis final_fee é 0; a sobretaxa calculada
        continua informada em 'surcharge', mas não é cobrada.
    """
    subtotal = _non_negative(order_value, 'subtotal')
    distance = _non_negative(distance_meters, 'distance_meters')

    mode = logic.get('distance_mode')
    if mode not in DISTANCE_MODES:
        raise DeliveryLogicError(f"distance_mode inválido: {mode}")
    if mode == 'custom' and not validate_tiers(logic.get('distance_tiers')):
        raise InvalidTierConfig("Modo 'custom' exige pelo menos uma faixa de distância")

    surcharge = calculate_order_surcharge(subtotal, logic)
    out_of_zone = is_out_of_zone(distance, logic)

    if check_free_delivery(subtotal, distance, logic):
        return FeeBreakdown(
            base_fee=0.0,
            surcharge=round(surcharge, 2),
            final_fee=0.0,
            free_delivery_applied=True,
            out_of_zone=out_of_zone,
            distance_meters=round(distance, 2),
            distance_mode=mode,
            calculation_method='free_delivery',
        )

    if mode == 'custom':
        base_fee, method = _tier_fee(distance, logic)
        final_fee = min(base_fee + surcharge, logic['max_delivery_fee'])
    else:
        if auto_fee_source is None:
            raise AutoFeeSourceRequired(
                f"Modo 'auto' sem fonte de taxa configurada (loja: {logic.get('shop_id')})"
            )
        base_fee = _non_negative(auto_fee_source.quote(distance, subtotal, logic), 'auto_fee')
        method = 'auto'
        final_fee = base_fee + surcharge

    logger.debug("Taxa calculada: modo=%s base=%.2f sobretaxa=%.2f final=%.2f", mode, base_fee, surcharge, final_fee)

    return FeeBreakdown(
        base_fee=round(base_fee, 2),
        surcharge=round(surcharge, 2),
        final_fee=round(max(final_fee, 0.0), 2),
        free_delivery_applied=False,
        out_of_zone=out_of_zone,
        distance_meters=round(distance, 2),
        distance_mode=mode,
        calculation_method=method,
    )


def resolve_delivery_fee(order_value, distance_meters, logic: Optional[DeliveryLogicConfig],
                         auto_fee_source=None) -> FeeBreakdown:
    """
    Igual a calculate_total_delivery_fee, mas sem configuração da loja cai na
    taxa padrão (config.DEFAULT_DELIVERY_FEE) em vez de falhar.
    """
    if logic is None:
        distance = _non_negative(distance_meters, 'distance_meters')
        logger.warning("Loja sem lógica de entrega, usando taxa padrão %.2f", config.DEFAULT_DELIVERY_FEE)
        return FeeBreakdown(
            base_fee=round(config.DEFAULT_DELIVERY_FEE, 2),
            surcharge=0.0,
            final_fee=round(config.DEFAULT_DELIVERY_FEE, 2),
            free_delivery_applied=False,
            out_of_zone=False,
            distance_meters=round(distance, 2),
            distance_mode='default',
            calculation_method='default',
        )
    return calculate_total_delivery_fee(order_value, distance_meters, logic, auto_fee_source)
