# Overview: Pytest coverage for inventory endpoints and derived stock fields.

"""
Inventory Tests

- derived fields (total value, low-stock flag) are computed server-side
- manual quantity adjustments (set/add/subtract)
- soft delete, listing filters and summary
- role restrictions on create/update/delete
"""


NEW_ITEM = {
    "name": "Papas fritas",
    "category": "Snacks",
    "quantity": 20,
    "cost_price_cents": 120000,
    "selling_price_cents": 350000,
    "unit": "paquete",
    "sku": "snk-001",
    "supplier": {"name": "Distribuidora X", "email": "Ventas@X.com"},
}


class TestCreateItem:

    def test_create_computes_derived_fields(self, client, admin_headers):
        resp = client.post("/api/inventory", json=NEW_ITEM, headers=admin_headers)
        assert resp.status_code == 201
        item = resp.json["data"]["item"]
        assert item["total_value_cents"] == 20 * 120000
        assert item["is_low_stock"] is False
        assert item["min_quantity"] == 5
        assert item["sku"] == "SNK-001"
        assert item["supplier"]["email"] == "ventas@x.com"

    def test_client_cannot_set_derived_fields(self, client, admin_headers):
        payload = dict(NEW_ITEM, total_value_cents=1)
        resp = client.post("/api/inventory", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        fields = [e["field"] for e in resp.json["errors"]]
        assert "total_value_cents" in fields

    def test_missing_required_fields_reported_together(self, client, admin_headers):
        resp = client.post("/api/inventory", json={"name": "X"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["status"] == "error"
        fields = {e["field"] for e in resp.json["errors"]}
        assert {"category", "quantity", "cost_price_cents", "selling_price_cents", "unit"} <= fields

    def test_invalid_category_rejected(self, client, admin_headers):
        resp = client.post("/api/inventory", json=dict(NEW_ITEM, category="Licores"), headers=admin_headers)
        assert resp.status_code == 400

    def test_negative_quantity_rejected(self, client, admin_headers):
        resp = client.post("/api/inventory", json=dict(NEW_ITEM, quantity=-1), headers=admin_headers)
        assert resp.status_code == 400

    def test_employee_cannot_create(self, client, employee_headers):
        resp = client.post("/api/inventory", json=NEW_ITEM, headers=employee_headers)
        assert resp.status_code == 403

    def test_manager_can_create(self, client, manager_headers):
        resp = client.post("/api/inventory", json=NEW_ITEM, headers=manager_headers)
        assert resp.status_code == 201


class TestUpdateItem:

    def test_update_recomputes_low_stock(self, client, admin_headers, item_a):
        resp = client.put(f"/api/inventory/{item_a.id}", json={"min_quantity": 10}, headers=admin_headers)
        assert resp.status_code == 200
        item = resp.json["data"]["item"]
        assert item["quantity"] == 10
        assert item["is_low_stock"] is True

    def test_min_cannot_exceed_max(self, client, admin_headers, item_a):
        resp = client.put(f"/api/inventory/{item_a.id}", json={"min_quantity": 2000}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_missing_item_is_404(self, client, admin_headers):
        resp = client.put("/api/inventory/99999", json={"name": "Nope"}, headers=admin_headers)
        assert resp.status_code == 404


class TestUpdateQuantity:

    def test_set_is_default_operation(self, client, employee_headers, item_a):
        resp = client.post(f"/api/inventory/{item_a.id}/update-quantity", json={"quantity": 3}, headers=employee_headers)
        assert resp.status_code == 200
        item = resp.json["data"]["item"]
        assert item["quantity"] == 3
        assert item["is_low_stock"] is True
        assert item["total_value_cents"] == 3 * 150000

    def test_add(self, client, employee_headers, item_a):
        resp = client.post(
            f"/api/inventory/{item_a.id}/update-quantity",
            json={"quantity": 5, "operation": "add"},
            headers=employee_headers,
        )
        assert resp.json["data"]["item"]["quantity"] == 15

    def test_subtract_floors_at_zero(self, client, employee_headers, item_a):
        resp = client.post(
            f"/api/inventory/{item_a.id}/update-quantity",
            json={"quantity": 50, "operation": "subtract"},
            headers=employee_headers,
        )
        assert resp.json["data"]["item"]["quantity"] == 0

    def test_rejects_negative_amount(self, client, employee_headers, item_a):
        resp = client.post(f"/api/inventory/{item_a.id}/update-quantity", json={"quantity": -2}, headers=employee_headers)
        assert resp.status_code == 400

    def test_rejects_unknown_operation(self, client, employee_headers, item_a):
        resp = client.post(
            f"/api/inventory/{item_a.id}/update-quantity",
            json={"quantity": 2, "operation": "double"},
            headers=employee_headers,
        )
        assert resp.status_code == 400

    def test_crossing_threshold_publishes_low_stock(self, client, employee_headers, item_a, subscription_a, drain):
        client.post(f"/api/inventory/{item_a.id}/update-quantity", json={"quantity": 2}, headers=employee_headers)
        types = [event.type for event in drain(subscription_a)]
        assert "inventory.quantity_updated" in types
        assert "inventory.low_stock" in types


class TestListAndDelete:

    def test_list_sorted_by_name_with_summary(self, client, employee_headers, restaurant_a, item_factory):
        item_factory(restaurant_a, name="Zanahoria", category="Ingredientes", quantity=1)
        item_factory(restaurant_a, name="Arroz", category="Ingredientes", quantity=30)

        resp = client.get("/api/inventory", headers=employee_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert [i["name"] for i in data["items"]] == ["Arroz", "Zanahoria"]
        assert data["pagination"]["total"] == 2
        assert data["summary"]["total_items"] == 2
        assert data["summary"]["low_stock_items"] == 1
        assert data["summary"]["categories"] == ["Ingredientes"]

    def test_filters(self, client, employee_headers, restaurant_a, item_factory):
        item_factory(restaurant_a, name="Brownie", category="Postres", quantity=2)
        item_factory(restaurant_a, name="Agua", category="Bebidas", quantity=40)

        resp = client.get("/api/inventory?category=Postres", headers=employee_headers)
        assert [i["name"] for i in resp.json["data"]["items"]] == ["Brownie"]

        resp = client.get("/api/inventory?search=agu", headers=employee_headers)
        assert [i["name"] for i in resp.json["data"]["items"]] == ["Agua"]

        resp = client.get("/api/inventory?low_stock=true", headers=employee_headers)
        assert [i["name"] for i in resp.json["data"]["items"]] == ["Brownie"]

    def test_pagination_limit_bounds(self, client, employee_headers):
        resp = client.get("/api/inventory?limit=500", headers=employee_headers)
        assert resp.status_code == 400

    def test_delete_is_soft(self, client, admin_headers, item_a, reload):
        resp = client.delete(f"/api/inventory/{item_a.id}", headers=admin_headers)
        assert resp.status_code == 200

        resp = client.get(f"/api/inventory/{item_a.id}", headers=admin_headers)
        assert resp.status_code == 404

        assert reload(item_a).is_active is False

    def test_low_stock_endpoint(self, client, employee_headers, restaurant_a, item_factory):
        item_factory(restaurant_a, name="Queso", quantity=1, min_quantity=3)
        item_factory(restaurant_a, name="Pan", quantity=50)
        resp = client.get("/api/inventory/low-stock", headers=employee_headers)
        assert [i["name"] for i in resp.json["data"]["items"]] == ["Queso"]
