"""
Parts catalog tests: CRUD, SKU uniqueness, ledger-backed stock edits,
filters, and the deletion guard for parts with sale history.
"""

import pytest

from repairshop.extensions import db
from repairshop.models import Part, PartModel, StockTransaction
from repairshop.services import parts_service
from repairshop.services.inventory_service import get_ledger_balance
from repairshop.services.parts_service import PartInUseError

from conftest import reload_part


def _part_body(**overrides):
    body = {
        "sku": "IPH15-SCR",
        "name": "iPhone 15 Screen",
        "description": "OLED display",
        "realCost": 150,
        "sellingPrice": 250.0,
        "stock": 5,
        "lowStockThreshold": 2,
    }
    body.update(overrides)
    return body


class TestCreatePart:
    def test_create_records_opening_stock_in_ledger(self, client, db_session):
        resp = client.post("/api/parts", json=_part_body())

        assert resp.status_code == 201
        part = resp.get_json()["part"]
        assert part["sku"] == "IPH15-SCR"
        assert part["realCost"] == 150.0
        assert part["stock"] == 5
        assert part["isLowStock"] is False

        ledger = db.session.query(StockTransaction).filter_by(part_id=part["id"]).all()
        assert [(t.type, t.quantity, t.reason) for t in ledger] == [("IN", 5, "Initial stock")]

    def test_zero_opening_stock_writes_no_ledger_row(self, client, db_session):
        part = client.post("/api/parts", json=_part_body(stock=0)).get_json()["part"]
        assert db.session.query(StockTransaction).filter_by(part_id=part["id"]).count() == 0

    def test_duplicate_sku_is_409(self, client, db_session):
        client.post("/api/parts", json=_part_body())
        resp = client.post("/api/parts", json=_part_body(name="Other"))

        assert resp.status_code == 409
        assert db.session.query(Part).count() == 1

    def test_links_models(self, client, iphone_models):
        ids = [iphone_models["iphone-15"].id, iphone_models["iphone-14"].id]
        resp = client.post("/api/parts", json=_part_body(modelIds=ids))

        assert resp.status_code == 201
        models = resp.get_json()["part"]["models"]
        assert sorted(m["id"] for m in models) == sorted(ids)
        brand = models[0]["family"]["brand"]
        assert brand["slug"] == "apple"
        assert brand["platform"]["slug"] == "ios"

    def test_unknown_model_id_is_400(self, client, db_session):
        resp = client.post("/api/parts", json=_part_body(modelIds=[424242]))

        assert resp.status_code == 400
        assert resp.get_json()["details"][0]["field"] == "modelIds"
        assert db.session.query(Part).count() == 0

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"sellingPrice": -1}, "sellingPrice"),
            ({"realCost": 10_000_000}, "realCost"),
            ({"stock": -3}, "stock"),
            ({"lowStockThreshold": -1}, "lowStockThreshold"),
            ({"name": "   "}, "name"),
            ({"sku": None}, "sku"),
            ({"isLowStock": True}, "isLowStock"),
            ({"stock": "many"}, "stock"),
            ({"sellingPrice": "cheap"}, "sellingPrice"),
            ({"realCost": [1]}, "realCost"),
        ],
    )
    def test_validation_errors(self, client, db_session, overrides, field):
        resp = client.post("/api/parts", json=_part_body(**overrides))

        assert resp.status_code == 400
        assert resp.get_json()["details"][0]["field"] == field

    def test_missing_required(self, client, db_session):
        resp = client.post("/api/parts", json={"name": "No SKU"})
        assert resp.status_code == 400
        assert "sku" in resp.get_json()["error"]


class TestUpdatePart:
    def test_stock_edit_is_recorded_as_adjust(self, client, make_part):
        part = make_part(stock=5)

        resp = client.put(f"/api/parts/{part.id}", json={"stock": 2})

        assert resp.status_code == 200
        assert resp.get_json()["part"]["stock"] == 2
        adjust = db.session.query(StockTransaction).filter_by(part_id=part.id, type="ADJUST").one()
        assert adjust.quantity == -3
        assert get_ledger_balance(part.id) == 2

    def test_unchanged_stock_writes_nothing(self, client, make_part):
        part = make_part(stock=5)
        client.put(f"/api/parts/{part.id}", json={"stock": 5, "name": "Renamed"})

        assert reload_part(part.id).name == "Renamed"
        assert db.session.query(StockTransaction).filter_by(part_id=part.id).count() == 1

    def test_prices_and_threshold(self, client, make_part):
        part = make_part(stock=5)

        resp = client.put(
            f"/api/parts/{part.id}",
            json={"sellingPrice": "19.999", "realCost": 7, "lowStockThreshold": 5},
        )

        body = resp.get_json()["part"]
        assert body["sellingPrice"] == 20.0
        assert body["realCost"] == 7.0
        assert body["isLowStock"] is True

        stored = reload_part(part.id)
        assert stored.selling_price_cents == 2000
        assert stored.real_cost_cents == 700

    def test_prices_are_stored_as_whole_cents(self, client, db_session):
        resp = client.post("/api/parts", json=_part_body(realCost=0.1, sellingPrice="12.345"))

        body = resp.get_json()["part"]
        assert body["realCost"] == 0.1
        assert body["sellingPrice"] == 12.35
        stored = reload_part(body["id"])
        assert stored.real_cost_cents == 10
        assert stored.selling_price_cents == 1235

    def test_replace_model_links(self, client, make_part, iphone_models):
        part = make_part(model_ids=[iphone_models["iphone-15"].id, iphone_models["iphone-14"].id])

        resp = client.put(
            f"/api/parts/{part.id}",
            json={"modelIds": [iphone_models["iphone-15"].id, iphone_models["galaxy-s24"].id]},
        )

        assert resp.status_code == 200
        ids = {m["id"] for m in resp.get_json()["part"]["models"]}
        assert ids == {iphone_models["iphone-15"].id, iphone_models["galaxy-s24"].id}
        assert db.session.query(PartModel).filter_by(part_id=part.id).count() == 2

    def test_sku_taken_by_other_part_is_409(self, client, make_part):
        make_part(sku="TAKEN")
        other = make_part(sku="FREE")

        resp = client.put(f"/api/parts/{other.id}", json={"sku": "TAKEN"})
        assert resp.status_code == 409

    def test_keeping_own_sku_is_fine(self, client, make_part):
        part = make_part(sku="MINE")
        assert client.put(f"/api/parts/{part.id}", json={"sku": "MINE"}).status_code == 200

    def test_missing_part_is_404(self, client, db_session):
        assert client.put("/api/parts/999", json={"name": "x"}).status_code == 404


class TestGetPart:
    def test_detail_includes_recent_ledger(self, client, make_part):
        part = make_part(stock=20)
        for _ in range(11):
            client.post("/api/transactions", json={"type": "OUT", "quantity": 1, "partId": part.id})

        body = client.get(f"/api/parts/{part.id}").get_json()["part"]

        assert body["stock"] == 9
        assert body["transactionCount"] == 12
        assert len(body["transactions"]) == 10
        assert body["transactions"][0]["type"] == "OUT"

    def test_missing_part_is_404(self, client, db_session):
        assert client.get("/api/parts/31337").status_code == 404


class TestListParts:
    def test_search_and_low_stock(self, client, make_part):
        make_part(name="iPhone 15 Screen", sku="IPH15-SCR", stock=1, low_stock_threshold=2)
        make_part(name="Galaxy Battery", sku="GAL-BAT", stock=10, low_stock_threshold=2)
        make_part(name="Charging Port", sku="PORT-1", description="fits iphone 12", stock=5)

        search = client.get("/api/parts?q=iphone").get_json()
        low = client.get("/api/parts?lowStock=true").get_json()

        assert {p["sku"] for p in search["parts"]} == {"IPH15-SCR", "PORT-1"}
        assert [p["sku"] for p in low["parts"]] == ["IPH15-SCR"]

    def test_hierarchy_filters(self, client, make_part, iphone_models):
        apple_part = make_part(sku="APL", model_ids=[iphone_models["iphone-15"].id])
        make_part(sku="SAM", model_ids=[iphone_models["galaxy-s24"].id])
        make_part(sku="NONE")

        by_platform = client.get("/api/parts?platform=ios").get_json()
        by_brand = client.get("/api/parts?brand=samsung").get_json()
        by_model = client.get("/api/parts?model=iphone-14").get_json()
        by_family_and_model = client.get("/api/parts?family=iphone&model=iphone-15").get_json()

        assert [p["sku"] for p in by_platform["parts"]] == ["APL"]
        assert [p["sku"] for p in by_brand["parts"]] == ["SAM"]
        assert by_model["parts"] == []
        assert [p["id"] for p in by_family_and_model["parts"]] == [apple_part.id]

    def test_pagination_caps_limit(self, client, make_part):
        for _ in range(3):
            make_part()

        body = client.get("/api/parts?limit=500").get_json()
        assert body["pagination"]["limit"] == 100
        assert body["pagination"]["totalCount"] == 3


class TestDeletePart:
    def test_unsold_part_is_deleted_with_links_and_ledger(self, client, make_part, iphone_models):
        part = make_part(stock=4, model_ids=[iphone_models["iphone-15"].id])
        client.post("/api/transactions", json={"type": "OUT", "quantity": 1, "partId": part.id})

        resp = client.delete(f"/api/parts/{part.id}")

        assert resp.status_code == 200
        db.session.expire_all()
        assert db.session.get(Part, part.id) is None
        assert db.session.query(StockTransaction).filter_by(part_id=part.id).count() == 0
        assert db.session.query(PartModel).filter_by(part_id=part.id).count() == 0

    def test_sold_part_is_blocked_with_sale_count(self, client, make_part, make_sale):
        part = make_part(stock=10)
        make_sale([(part, 1, 100.0)])
        make_sale([(part, 2, 100.0)])

        resp = client.delete(f"/api/parts/{part.id}")

        assert resp.status_code == 400
        body = resp.get_json()
        assert "2 sales" in body["error"]
        assert body["details"]["saleCount"] == 2
        assert reload_part(part.id) is not None

    def test_missing_part_is_404(self, client, db_session):
        assert client.delete("/api/parts/4040").status_code == 404

    def test_database_constraint_is_reported_as_in_use(self, make_part, make_sale, monkeypatch):
        part = make_part(stock=3)
        make_sale([(part, 1, 10.0)])
        monkeypatch.setattr(parts_service, "count_blocking_sales", lambda part_id: 0)

        with pytest.raises(PartInUseError):
            parts_service.delete_part(part_id=part.id)

        assert reload_part(part.id).stock == 2
