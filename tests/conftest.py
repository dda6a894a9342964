from types import SimpleNamespace

import pytest

from delivery_api.logic.delivery_fee import delivery_logic_from_dict
from delivery_api.utils import helpers


class FakeQuery:
    def __init__(self, rows, error=None):
        self.rows = rows
        self.error = error

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self.rows = [r for r in self.rows if str(r.get(column)) == str(value)]
        return self

    def in_(self, column, values):
        values = {str(v) for v in values}
        self.rows = [r for r in self.rows if str(r.get(column)) in values]
        return self

    def limit(self, count):
        self.rows = self.rows[:count]
        return self

    def execute(self):
        if self.error:
            raise self.error
        return SimpleNamespace(data=list(self.rows))


class FakeSupabase:
    def __init__(self, tables=None, error=None):
        self.tables = tables or {}
        self.error = error

    def table(self, name):
        return FakeQuery(list(self.tables.get(name, [])), self.error)


@pytest.fixture(autouse=True)
def no_supabase(monkeypatch):
    monkeypatch.setattr(helpers, "supabase", None)


@pytest.fixture
def fake_supabase(monkeypatch):
    def install(tables=None, error=None):
        client = FakeSupabase(tables, error)
        monkeypatch.setattr(helpers, "supabase", client)
        return client
    return install


@pytest.fixture
def custom_logic():
    return delivery_logic_from_dict({
        "shop_id": "shop-1",
        "minimum_order_value": 200,
        "small_order_surcharge": 40,
        "least_order_value": 100,
        "distance_mode": "custom",
        "distance_tiers": [
            {"max_distance": 200, "fee": 20},
            {"max_distance": 400, "fee": 30},
        ],
        "max_delivery_fee": 130,
        "beyond_tier_fee_per_unit": 10,
        "beyond_tier_distance_unit": 250,
        "free_delivery_threshold": 800,
        "free_delivery_radius": 1000,
    })


@pytest.fixture
def auto_logic():
    return delivery_logic_from_dict({"shop_id": "shop-2", "distance_mode": "auto"})


@pytest.fixture
def app():
    from delivery_api.main import app as flask_app

    flask_app.config["TESTING"] = True
    original_source = flask_app.auto_fee_source
    yield flask_app
    flask_app.auto_fee_source = original_source


@pytest.fixture
def client(app):
    return app.test_client()
