import os
import re
import logging
from datetime import datetime
from flask import Flask, jsonify, request, Blueprint, make_response
from flask_cors import CORS
from dotenv import load_dotenv

# --- Configuração de Logging ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

load_dotenv()

# --- Importações dos Blueprints ---
try:
    from delivery_api.routes.delivery_calculator import delivery_calculator_bp
    from delivery_api.providers.platform_fee import get_auto_fee_source
    from delivery_api.utils import helpers
except ImportError as e:
    logging.error(f"Erro de importação: {e}")
    raise

# --- Inicialização do App ---
app = Flask(__name__)
app.url_map.strict_slashes = False

config_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.py')
if os.path.exists(config_path):
    app.config.from_pyfile(config_path)
else:
    logging.warning("Arquivo config.py não encontrado. Usando configurações padrão.")

# ---------------- CORS ----------------
PROD_ORIGINS = [
    "https://app.bazaar-delivery.com",
    "https://merchants.bazaar-delivery.com",
]

# Dev local
LOCAL_HOSTS = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:5173", "http://127.0.0.1:5173",
    "http://localhost:8081", "http://127.0.0.1:8081",
]

# qualquer localhost em porta qualquer
LOCAL_ORIGIN_PATTERNS = [r"^http://localhost:\d+$", r"^http://127\.0\.0\.1:\d+$"]

# Permite estender via variável de ambiente
EXTRA = [o.strip() for o in os.environ.get("EXTRA_ALLOWED_ORIGINS", "").split(",") if o.strip()]

ALLOWED_ORIGINS = set(PROD_ORIGINS + LOCAL_HOSTS + EXTRA)


def is_allowed_origin(origin: str) -> bool:
    if not origin:
        return False
    if origin in ALLOWED_ORIGINS:
        return True
    return any(re.match(pattern, origin) for pattern in LOCAL_ORIGIN_PATTERNS)


# Origens fora da lista não recebem Access-Control-Allow-Origin
CORS(
    app,
    resources={r"/api/*": {"origins": sorted(ALLOWED_ORIGINS) + LOCAL_ORIGIN_PATTERNS}},
    allow_headers=["Content-Type", "Authorization"],
    methods=["GET", "POST", "OPTIONS"]
)


@app.before_request
def handle_preflight():
    if request.method == "OPTIONS":
        origin = request.headers.get("Origin", "")
        resp = make_response()
        resp.headers["Access-Control-Allow-Origin"] = origin if is_allowed_origin(origin) else "null"
        resp.headers["Vary"] = "Origin"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        return resp, 204


# --- REGISTRO DE BLUEPRINTS ---
delivery_bp = Blueprint('delivery', __name__, url_prefix='/api/delivery')
delivery_bp.register_blueprint(delivery_calculator_bp)
app.register_blueprint(delivery_bp)

# --- Fonte de taxa do modo auto ---
app.auto_fee_source = get_auto_fee_source()


# --- Rotas de Status ---
@app.route('/')
def index():
    return jsonify({"status": "online", "message": "Serviço de taxas de entrega funcionando!"})


@app.route('/health')
def health_check_simple():
    return jsonify({
        "status": "ok",
        "message": "Server is running",
        "timestamp": datetime.now().isoformat(),
        "service": "Delivery Fee API"
    }), 200


@app.route('/api/health')
def health_check():
    return jsonify({
        "status": "healthy",
        "database": "connected" if helpers.supabase else "disconnected",
        "auto_fee_source": type(app.auto_fee_source).__name__ if app.auto_fee_source else "not_configured",
        "cors_enabled": True
    })


# --- Handlers de Erro ---
@app.errorhandler(404)
def not_found(error):
    return jsonify({"error": "Endpoint não encontrado", "path": request.path}), 404


@app.errorhandler(500)
def internal_error(error):
    logger.error(f"Erro interno: {error}", exc_info=True)
    return jsonify({"error": "Erro interno do servidor"}), 500


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({"error": "Método não permitido", "method": request.method}), 405


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'
    logger.info(f"Iniciando servidor na porta {port} (debug: {debug})")
    app.run(host='0.0.0.0', port=port, debug=debug, use_reloader=debug)
