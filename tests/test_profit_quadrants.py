"""
Profit map aggregation and quadrant classification.

Pure-function tests build ItemPerformance / LedgerSale values directly;
the service tests go through the in-memory ledger.
"""
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from stockmaster.exceptions import LedgerQueryError
from stockmaster.models.ledger import ItemKind, LedgerEntryType, ProfitLedgerEntry
from stockmaster.services.profit_quadrant_service import (
    QUADRANT_COLORS,
    ItemPerformance,
    LedgerSale,
    ProfitQuadrantService,
    Quadrant,
    aggregate_sales,
    classify_items,
    cohort_baselines,
    profit_map_metrics,
    resolve_period,
)

from conftest import ORG, add_kit, add_product

TODAY = date(2024, 3, 20)


def _item(id, faturamento, lucro, quantidade, kind="produto"):
    margem = (lucro / faturamento) * 100 if faturamento > 0 else 0.0
    return ItemPerformance(
        id=id, name=id, type=kind,
        faturamento=faturamento, lucro=lucro, quantidade=quantidade, margem=margem,
    )


def _by_id(items):
    return {i.id: i.classificacao for i in items}


# ────────────────────────────────────────────
# AGGREGATION
# ────────────────────────────────────────────


class TestAggregateSales:

    def test_sums_per_item_in_first_seen_order(self):
        sales = [
            LedgerSale("b", ItemKind.PRODUCT, 100, 20, 2, TODAY),
            LedgerSale("a", ItemKind.KIT, 50, 10, 1, TODAY),
            LedgerSale("b", ItemKind.PRODUCT, 100, 30, 3, TODAY + timedelta(days=1)),
        ]
        items = aggregate_sales(sales, {"a": "Kit A"})

        assert [i.id for i in items] == ["b", "a"]
        b = items[0]
        assert (b.faturamento, b.lucro, b.quantidade) == (200, 50, 5)
        assert b.margem == pytest.approx(25.0)
        assert b.ticket_medio == pytest.approx(40.0)
        assert items[1].name == "Kit A"
        assert items[1].type == "kit"

    def test_zero_revenue_gives_zero_margin(self):
        items = aggregate_sales([LedgerSale("a", ItemKind.PRODUCT, 0, -5, 1, TODAY)])
        assert items[0].margem == 0
        assert items[0].ticket_medio == 0

    def test_zero_quantity_gives_zero_ticket(self):
        items = aggregate_sales([LedgerSale("a", ItemKind.PRODUCT, 10, 5, 0, TODAY)])
        assert items[0].ticket_medio == 0

    def test_sales_without_item_skipped(self):
        assert aggregate_sales([LedgerSale("", ItemKind.PRODUCT, 10, 5, 1, TODAY)]) == []

    def test_unknown_names(self):
        items = aggregate_sales([
            LedgerSale("p", ItemKind.PRODUCT, 1, 1, 1, TODAY),
            LedgerSale("k", ItemKind.KIT, 1, 1, 1, TODAY),
        ])
        assert [i.name for i in items] == ["Produto desconhecido", "Kit desconhecido"]

    def test_daily_series(self):
        items = aggregate_sales([
            LedgerSale("a", ItemKind.PRODUCT, 10, 4, 1, TODAY),
            LedgerSale("a", ItemKind.PRODUCT, 10, 6, 2, TODAY),
        ])
        assert items[0].to_dict()["dailyData"] == [
            {"date": TODAY.isoformat(), "lucro": 10.0, "vendas": 3.0}
        ]


# ────────────────────────────────────────────
# CLASSIFICATION
# ────────────────────────────────────────────


class TestClassifyItems:

    def test_empty_cohort(self):
        assert classify_items([]) == []

    def test_every_item_gets_exactly_one_quadrant_and_its_color(self):
        items = classify_items([_item(str(i), 100 + i, 10 * i - 20, i) for i in range(10)])
        for item in items:
            assert item.classificacao in Quadrant
            assert item.color == QUADRANT_COLORS[item.classificacao]

    def test_top_quartile_of_eight_is_two(self):
        # profit and quantity both descending with id
        items = [_item(f"i{n}", 1000, 800 - n * 100, 80 - n * 10) for n in range(8)]
        classify_items(items)
        stars = [i.id for i in items if i.classificacao == Quadrant.ESTRELA]
        assert stars == ["i0", "i1"]

    def test_three_items_only_rank_zero_is_top(self):
        # 3 * 0.25 = 0.75 so only rank 0 qualifies
        items = [_item("a", 100, 50, 10), _item("b", 100, 40, 9), _item("c", 100, 45, 8)]
        classify_items(items)
        assert items[0].classificacao == Quadrant.ESTRELA
        assert items[1].classificacao != Quadrant.ESTRELA

    def test_star_needs_both_rankings(self):
        # a tops profit, b tops quantity: no star
        items = [_item("a", 100, 90, 1), _item("b", 100, 10, 50),
                 _item("c", 100, 50, 5), _item("d", 100, 40, 4)]
        classify_items(items)
        assert Quadrant.ESTRELA not in _by_id(items).values()

    def test_ties_keep_input_order(self):
        items = [_item("first", 100, 50, 10), _item("second", 100, 50, 10),
                 _item("c", 100, 30, 5), _item("d", 100, 30, 5)]
        classify_items(items)
        assert items[0].classificacao == Quadrant.ESTRELA
        assert items[1].classificacao != Quadrant.ESTRELA

    def test_star_rule_wins_over_loss(self):
        # whole cohort loses money; the least bad, best seller is still Estrela
        items = [_item("a", 100, -1, 50), _item("b", 100, -10, 5),
                 _item("c", 100, -20, 4), _item("d", 100, -30, 3)]
        classify_items(items)
        assert _by_id(items) == {
            "a": Quadrant.ESTRELA,
            "b": Quadrant.PROBLEMATICO,
            "c": Quadrant.PROBLEMATICO,
            "d": Quadrant.PROBLEMATICO,
        }

    def test_mixed_cohort(self):
        items = [
            _item("estrela", 1000, 300, 100),
            _item("sombra", 1000, 100, 10),    # margin 10%, revenue above avg profit
            _item("estavel", 100, 40, 5),      # margin 40%
            _item("prejuizo", 200, -10, 8),
        ]
        classify_items(items)
        # avg profit = 107.5
        assert _by_id(items) == {
            "estrela": Quadrant.ESTRELA,
            "sombra": Quadrant.SOMBRA,
            "estavel": Quadrant.ESTAVEL,
            "prejuizo": Quadrant.PROBLEMATICO,
        }

    def test_weak_profit_and_thin_margin_is_problem(self):
        items = [_item("top", 1000, 500, 100), _item("fraco", 400, 20, 10),
                 _item("x", 100, 90, 5), _item("y", 100, 90, 4)]
        classify_items(items)
        # avg profit 175; fraco: 20 < 87.5 and margin 5% < 10%
        assert _by_id(items)["fraco"] == Quadrant.PROBLEMATICO

    def test_shadow_compares_revenue_against_average_profit(self):
        # revenue 150 exceeds the average *profit* (~96) even though it is the lowest revenue
        items = [_item("top", 5000, 300, 100), _item("s", 150, 15, 10),
                 _item("x", 2000, 40, 8), _item("y", 500, 30, 4)]
        classify_items(items)
        assert _by_id(items)["s"] == Quadrant.SOMBRA

    def test_classification_is_idempotent(self):
        items = [_item(str(i), 100 * (i + 1), 7 * i - 10, 3 * i) for i in range(6)]
        first = _by_id(classify_items(items))
        assert _by_id(classify_items(items)) == first

    def test_baselines(self):
        baselines = cohort_baselines([_item("a", 10, 4, 2), _item("b", 10, 6, 4)])
        assert baselines == {"avgLucro": 5.0, "avgQuantidade": 3.0}
        assert cohort_baselines([]) == {"avgLucro": 0.0, "avgQuantidade": 0.0}


class TestMetrics:

    def test_empty(self):
        assert profit_map_metrics([])["maisLucrativo"] is None

    def test_headline_cards(self):
        items = [_item("a", 100, 50, 10), _item("b", 300, 30, 10)]
        m = profit_map_metrics(items)
        assert m["lucroTotal"] == 80
        assert m["maisLucrativo"]["id"] == "a"
        assert m["piorMargem"]["id"] == "b"
        assert m["ticketMedio"] == 20


class TestResolvePeriod:

    def test_presets(self):
        assert resolve_period("7", today=TODAY) == (TODAY - timedelta(days=7), TODAY)
        assert resolve_period("15", today=TODAY) == (TODAY - timedelta(days=15), TODAY)

    def test_month_to_date(self):
        assert resolve_period("mes", today=TODAY) == (date(2024, 3, 1), TODAY)

    def test_unknown_defaults_to_thirty(self):
        assert resolve_period("90", today=TODAY) == (TODAY - timedelta(days=30), TODAY)

    def test_explicit_range_wins(self):
        start, end = date(2024, 1, 1), date(2024, 1, 31)
        assert resolve_period("7", start, end, today=TODAY) == (start, end)


# ────────────────────────────────────────────
# SERVICE
# ────────────────────────────────────────────


def _entry(db, item, kind, revenue, profit, quantity, entry_date,
           entry_type=LedgerEntryType.SALE, organization_id=ORG):
    db.add(ProfitLedgerEntry(
        organization_id=organization_id,
        entry_type=entry_type,
        item_kind=kind,
        item_id=item.id if item is not None else None,
        revenue=revenue,
        cost=revenue - profit,
        net_profit=profit,
        quantity=quantity,
        entry_date=entry_date,
    ))
    db.flush()


class TestProfitQuadrantService:

    @pytest.fixture
    def ledger(self, db):
        caneca = add_product(db, "Caneca")
        prato = add_product(db, "Prato")
        kit = add_kit(db, "Kit Cozinha", [(caneca, 1), (prato, 1)])

        _entry(db, caneca, ItemKind.PRODUCT, 300, 120, 10, TODAY - timedelta(days=2))
        _entry(db, prato, ItemKind.PRODUCT, 100, 5, 2, TODAY - timedelta(days=1))
        _entry(db, kit, ItemKind.KIT, 500, 100, 5, TODAY)
        # ignored: purchase, out of period, no item, other tenant
        _entry(db, caneca, ItemKind.PRODUCT, 999, 0, 99, TODAY, entry_type=LedgerEntryType.PURCHASE)
        _entry(db, caneca, ItemKind.PRODUCT, 999, 999, 99, TODAY - timedelta(days=60))
        _entry(db, None, ItemKind.PRODUCT, 999, 999, 99, TODAY)
        _entry(db, prato, ItemKind.PRODUCT, 999, 999, 99, TODAY, organization_id="org-2")
        return {"caneca": caneca, "prato": prato, "kit": kit}

    def test_both_kinds(self, db, ledger):
        data = ProfitQuadrantService(db).get_profit_map(ORG, today=TODAY)

        assert [i["name"] for i in data["items"]] == ["Caneca", "Kit Cozinha", "Prato"]
        assert data["metrics"]["lucroTotal"] == 225
        assert data["baselines"]["avgLucro"] == 75.0
        assert data["period"] == {"start": (TODAY - timedelta(days=30)).isoformat(), "end": TODAY.isoformat()}

    def test_kits_only(self, db, ledger):
        data = ProfitQuadrantService(db).get_profit_map(ORG, tipo="kits", today=TODAY)
        assert [i["id"] for i in data["items"]] == [ledger["kit"].id]
        # a cohort of one is its own top quartile
        assert data["items"][0]["classificacao"] == "Estrela"

    def test_products_only(self, db, ledger):
        data = ProfitQuadrantService(db).get_profit_map(ORG, tipo="produtos", today=TODAY)
        assert {i["type"] for i in data["items"]} == {"produto"}

    def test_item_fields(self, db, ledger):
        data = ProfitQuadrantService(db).get_profit_map(ORG, today=TODAY)
        caneca = data["items"][0]
        assert caneca["faturamento"] == 300
        assert caneca["margem"] == 40
        assert caneca["ticketMedio"] == 30
        assert caneca["color"] == QUADRANT_COLORS[Quadrant(caneca["classificacao"])]
        assert caneca["recomendacao"]

    def test_no_sales(self, db):
        data = ProfitQuadrantService(db).get_profit_map(ORG, today=TODAY)
        assert data["items"] == []
        assert data["metrics"]["lucroTotal"] == 0

    def test_query_failure_wrapped(self, db, monkeypatch):
        def boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("timeout"))

        monkeypatch.setattr(db, "query", boom)

        with pytest.raises(LedgerQueryError):
            ProfitQuadrantService(db).get_profit_map(ORG, today=TODAY)
