# delivery_api/config.py

"""
Ficheiro central de configurações do serviço de taxas de entrega.
Mova para cá todas as "regras de negócio" que podem mudar com o tempo.
"""
import os

# =================================================
# Taxa padrão (quando a loja não tem configuração)
# =================================================
# Cobrada quando não existe linha em shop_delivery_logic para a loja.
DEFAULT_DELIVERY_FEE = float(os.environ.get('DEFAULT_DELIVERY_FEE', '60.0'))


# =================================================
# Valores padrão da lógica de entrega por loja
# =================================================
# Mesmos valores usados pelo trigger que cria a lógica de entrega de novas lojas.
DEFAULT_MINIMUM_ORDER_VALUE = 200.00
DEFAULT_SMALL_ORDER_SURCHARGE = 40.00
DEFAULT_LEAST_ORDER_VALUE = 100.00
DEFAULT_DISTANCE_MODE = 'auto'
DEFAULT_MAX_DELIVERY_FEE = 130.00
DEFAULT_BEYOND_TIER_FEE_PER_UNIT = 10.00
# Em metros.
DEFAULT_BEYOND_TIER_DISTANCE_UNIT = 250.00
DEFAULT_FREE_DELIVERY_THRESHOLD = 800.00
DEFAULT_FREE_DELIVERY_RADIUS = 1000.00

DEFAULT_DISTANCE_TIERS = [
    {"max_distance": 200, "fee": 20},
    {"max_distance": 400, "fee": 30},
    {"max_distance": 600, "fee": 40},
    {"max_distance": 800, "fee": 50},
    {"max_distance": 1000, "fee": 60},
]


# =================================================
# Fonte de taxa do modo "auto"
# =================================================
# platform | fixed | none
AUTO_FEE_SOURCE = os.environ.get('AUTO_FEE_SOURCE', 'platform').lower()

# A taxa base cobrada pela plataforma em todas as entregas.
PLATFORM_FIXED_DELIVERY_FEE = float(os.environ.get('PLATFORM_FIXED_DELIVERY_FEE', '30.0'))

# O custo adicional por cada quilómetro além do limite.
PLATFORM_PER_KM_DELIVERY_FEE = float(os.environ.get('PLATFORM_PER_KM_DELIVERY_FEE', '15.0'))

# A distância (em KM) abaixo da qual o custo adicional não é aplicado.
PLATFORM_BASE_DISTANCE_KM = float(os.environ.get('PLATFORM_BASE_DISTANCE_KM', '1.0'))

# Usada quando AUTO_FEE_SOURCE=fixed.
AUTO_FIXED_DELIVERY_FEE = float(os.environ.get('AUTO_FIXED_DELIVERY_FEE', '50.0'))
