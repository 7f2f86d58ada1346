"""
Shared fixtures.

Settings are read once at import time, so the environment is pinned here,
before anything under stockmaster is imported: an in-memory SQLite database,
no scheduler, no LLM key, logs in a temp dir.
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["ENABLE_LLM_RECOMMENDATIONS"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="stockmaster-logs-")

from datetime import datetime

import pytest

from stockmaster.models.base import Base, SessionLocal, engine, init_db
from stockmaster.models.catalog import CatalogItem, Kit, KitComponent
from stockmaster.models.movement import MovementDirection, MovementEvent
from stockmaster.utils.cache import clear_cache

ORG = "org-1"


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        clear_cache()


# ────────────────────────────────────────────
# FAKE COMPLETION SERVICES
# ────────────────────────────────────────────


class StaticCompletion:
    """Returns a fixed reply and records every call."""

    def __init__(self, reply="Reabasteça em breve."):
        self.reply = reply
        self.calls = []

    def summarize(self, facts):
        self.calls.append(facts)
        return self.reply


class FailingCompletion:
    def __init__(self, error=None):
        self.error = error or TimeoutError("collaborator timed out")
        self.calls = 0

    def summarize(self, facts):
        self.calls += 1
        raise self.error


# ────────────────────────────────────────────
# ROW BUILDERS
# ────────────────────────────────────────────


def add_product(db, name, quantity=0.0, sale_price=0.0, organization_id=ORG, active=True, created_at=None):
    product = CatalogItem(
        organization_id=organization_id,
        sku=name.upper().replace(" ", "-"),
        name=name,
        quantity=quantity,
        sale_price=sale_price,
        active=active,
        created_at=created_at or datetime(2024, 1, 1),
    )
    db.add(product)
    db.flush()
    return product


def add_kit(db, name, components, organization_id=ORG):
    """components: list of (product, quantity_per_kit)"""
    kit = Kit(organization_id=organization_id, sku=name.upper(), name=name)
    db.add(kit)
    db.flush()
    for product, per_kit in components:
        db.add(KitComponent(kit_id=kit.id, product_id=product.id, quantity=per_kit))
    db.flush()
    return kit


def add_movement(db, quantity, created_at, product=None, kit=None,
                 direction=MovementDirection.OUT, organization_id=ORG):
    movement = MovementEvent(
        organization_id=organization_id,
        direction=direction,
        product_id=product.id if product is not None else None,
        kit_id=kit.id if kit is not None else None,
        quantity=quantity,
        created_at=created_at,
    )
    db.add(movement)
    db.flush()
    return movement
