# delivery_api/utils/helpers.py

import os
import json
import uuid
import logging
from supabase import create_client, Client
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --- Supabase ---
def create_supabase_client() -> Optional[Client]:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_KEY")
    if not url or not key:
        logger.warning("SUPABASE_URL/SUPABASE_SERVICE_KEY ausentes; leitura da lógica de entrega desativada.")
        return None
    try:
        client = create_client(url, key)
        logger.info("✅ Supabase client inicializado.")
        return client
    except Exception as e:
        logger.error(f"❌ Falha ao inicializar Supabase: {e}")
        return None


supabase: Optional[Client] = create_supabase_client()


# --- JSON utils ---
class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        if isinstance(obj, uuid.UUID):
            return str(obj)
        return super().default(obj)


def serialize_data(data):
    return json.loads(json.dumps(data, cls=CustomJSONEncoder))
