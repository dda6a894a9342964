import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from .. import config
from ..logic.delivery_fee import (
    calculate_distance,
    delivery_logic_from_dict,
    resolve_delivery_fee,
    validate_delivery_logic,
)
from ..logic.errors import DeliveryLogicError, DeliveryLogicUnavailable, OrderBelowMinimum
from ..logic.order_totals import calculate_order_totals, quote_shops
from ..utils.delivery_logic_store import fetch_delivery_logic, fetch_delivery_logics, fetch_shop_location
from ..utils.helpers import serialize_data

# Configuração do logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

delivery_calculator_bp = Blueprint('delivery_calculator', __name__)


def _error(message, status_code, **extra):
    body = {"status": "error", "error": message}
    body.update(extra)
    return jsonify(body), status_code


def handle_calculation_errors(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except OrderBelowMinimum as e:
            logger.warning(f"Pedido abaixo do mínimo: {e}")
            return _error(str(e), 422, least_order_value=e.least_order_value)
        except DeliveryLogicError as e:
            logger.warning(f"Erro de validação: {e}")
            return _error(str(e), 400)
        except DeliveryLogicUnavailable as e:
            logger.error(f"Lógica de entrega indisponível: {e}")
            return _error("Configuração de entrega indisponível no momento", 503)
        except Exception as e:
            logger.error(f"Erro inesperado ao calcular frete: {e}", exc_info=True)
            return _error("Erro interno ao calcular o frete", 500)
    return wrapper


def _auto_fee_source():
    return getattr(current_app, 'auto_fee_source', None)


def _request_json():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise DeliveryLogicError("Corpo da requisição deve ser um objeto JSON")
    return data


def _resolve_logic(data):
    """Lógica enviada no corpo tem prioridade; senão busca pela loja. None = sem configuração."""
    shop_id = data.get('shop_id')
    if data.get('delivery_logic') is not None:
        return delivery_logic_from_dict(data['delivery_logic'], shop_id=shop_id)
    if not shop_id:
        raise DeliveryLogicError("shop_id ou delivery_logic é obrigatório")
    return fetch_delivery_logic(shop_id)


def _resolve_shop_coords(data):
    if data.get('shop_latitude') is not None and data.get('shop_longitude') is not None:
        return data['shop_latitude'], data['shop_longitude']
    shop_id = data.get('shop_id')
    coords = fetch_shop_location(shop_id) if shop_id else None
    if coords is None:
        raise DeliveryLogicError("Coordenadas da loja não cadastradas")
    return coords


def _client_coords(data):
    if data.get('client_latitude') is None or data.get('client_longitude') is None:
        raise DeliveryLogicError("Coordenadas do cliente são obrigatórias")
    return data['client_latitude'], data['client_longitude']


@delivery_calculator_bp.route('/calculate_fee', methods=['POST'])
@handle_calculation_errors
def calculate_delivery_fee():
    """Calcula a taxa de entrega de um pedido para uma loja."""
    logger.info("=== INÍCIO calculate_delivery_fee ===")
    data = _request_json()
    logger.info(f"Dados recebidos: {data}")

    if data.get('subtotal') is None:
        return _error("subtotal é obrigatório", 400)

    logic = _resolve_logic(data)

    if data.get('distance_meters') is not None:
        distance_meters = data['distance_meters']
    else:
        client_latitude, client_longitude = _client_coords(data)
        shop_latitude, shop_longitude = _resolve_shop_coords(data)
        distance_meters = calculate_distance(shop_latitude, shop_longitude, client_latitude, client_longitude)
        logger.info(f"Distância calculada: {distance_meters:.0f} m")

    breakdown = resolve_delivery_fee(data['subtotal'], distance_meters, logic, _auto_fee_source())

    result = {
        "status": "success",
        "data": {
            **breakdown,
            "shop_id": data.get('shop_id'),
            "message": "Cálculo de frete realizado com sucesso",
        },
    }
    logger.info(f"Resultado final: {result}")
    return jsonify(serialize_data(result)), 200


@delivery_calculator_bp.route('/order_totals', methods=['POST'])
@handle_calculation_errors
def order_totals():
    """Totais do checkout (em centavos) para o carrinho de uma loja."""
    data = _request_json()

    items = data.get('items')
    prices = data.get('prices_cents')
    if not isinstance(items, list) or not items:
        return _error("items é obrigatório", 400)
    if not isinstance(prices, dict):
        return _error("prices_cents é obrigatório", 400)

    logic = _resolve_logic(data)
    totals = calculate_order_totals(
        items,
        prices,
        _resolve_shop_coords(data),
        _client_coords(data),
        logic,
        _auto_fee_source(),
    )
    return jsonify({"status": "success", "data": serialize_data(totals)}), 200


@delivery_calculator_bp.route('/shop_fees', methods=['POST'])
@handle_calculation_errors
def shop_fees():
    """Taxas exibidas na listagem de lojas para a localização do cliente."""
    data = _request_json()

    shops = data.get('shops')
    if not isinstance(shops, list):
        return _error("shops deve ser uma lista", 400)
    client_latitude, client_longitude = _client_coords(data)

    raw_logics = data.get('delivery_logics')
    if isinstance(raw_logics, dict):
        logics = {
            str(shop_id): delivery_logic_from_dict(raw, shop_id=str(shop_id))
            for shop_id, raw in raw_logics.items()
        }
    else:
        logics = fetch_delivery_logics(shop.get('id') for shop in shops if isinstance(shop, dict))

    quotes = quote_shops(shops, client_latitude, client_longitude, logics, _auto_fee_source())
    return jsonify({"status": "success", "data": quotes}), 200


@delivery_calculator_bp.route('/logic/validate', methods=['POST'])
@handle_calculation_errors
def validate_logic():
    """Valida o formulário de configuração de entrega do lojista sem salvar nada."""
    data = _request_json()
    raw = data.get('delivery_logic', data)

    try:
        logic = delivery_logic_from_dict(raw)
    except DeliveryLogicError as e:
        return jsonify({"status": "success", "data": {"valid": False, "errors": [str(e)]}}), 200

    errors = validate_delivery_logic(logic)
    return jsonify({
        "status": "success",
        "data": {
            "valid": not errors,
            "errors": errors,
            "delivery_logic": logic,
        },
    }), 200


@delivery_calculator_bp.route('/test', methods=['GET'])
def test_delivery_calculator():
    """Endpoint de teste para verificar se o serviço está funcionando"""
    source = _auto_fee_source()
    return jsonify({
        "status": "success",
        "message": "Serviço de cálculo de frete funcionando",
        "config": {
            "default_fee": config.DEFAULT_DELIVERY_FEE,
            "auto_fee_source": type(source).__name__ if source else None,
            "default_distance_tiers": config.DEFAULT_DISTANCE_TIERS,
        }
    }), 200
