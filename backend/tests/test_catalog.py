# Overview: Pytest coverage for catalog, product mappings and user management routes.

from orderdesk.services import order_service
from orderdesk.validation import OrderLine


class TestProducts:
    """/api/products"""

    def test_manager_creates_product(self, client, headers_a, category_a):
        response = client.post("/api/products", json={
            "name": "Latte",
            "price_cents": 450,
            "stock": 12,
            "category_id": category_a.id,
        }, headers=headers_a)

        assert response.status_code == 201
        assert response.json["data"]["name"] == "Latte"
        assert response.json["data"]["stock"] == 12

    def test_staff_cannot_write_catalog(self, client, staff_headers_a, coffee):
        created = client.post("/api/products", json={"name": "X", "price_cents": 1}, headers=staff_headers_a)
        updated = client.put(f"/api/products/{coffee.id}", json={"price_cents": 1}, headers=staff_headers_a)

        assert created.status_code == 403
        assert updated.status_code == 403
        assert client.get("/api/products", headers=staff_headers_a).status_code == 200

    def test_negative_price_and_unknown_fields_are_rejected(self, client, headers_a):
        negative = client.post("/api/products", json={"name": "X", "price_cents": -1}, headers=headers_a)
        unknown = client.post("/api/products", json={"name": "X", "price_cents": 1, "org_id": 2}, headers=headers_a)
        missing = client.post("/api/products", json={"price_cents": 1}, headers=headers_a)

        assert negative.status_code == 400
        assert unknown.status_code == 400
        assert missing.status_code == 400

    def test_list_search(self, client, headers_a, coffee, bagel):
        response = client.get("/api/products?search=cof", headers=headers_a)

        assert response.json["meta"]["total"] == 1
        assert response.json["data"][0]["id"] == coffee.id

    def test_product_used_by_orders_cannot_be_deleted(self, client, headers_a, ctx_a, coffee, bagel):
        order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])

        blocked = client.delete(f"/api/products/{coffee.id}", headers=headers_a)
        allowed = client.delete(f"/api/products/{bagel.id}", headers=headers_a)

        assert blocked.status_code == 409
        assert blocked.json["error"] == "CONFLICT"
        assert allowed.status_code == 200


class TestCategories:
    """/api/categories"""

    def test_create_and_rename(self, client, headers_a):
        created = client.post("/api/categories", json={"name": "Pastry"}, headers=headers_a)
        category_id = created.json["data"]["id"]

        renamed = client.put(f"/api/categories/{category_id}", json={"name": "Bakery"}, headers=headers_a)

        assert created.status_code == 201
        assert renamed.json["data"]["name"] == "Bakery"

    def test_duplicate_name_conflicts(self, client, headers_a, category_a):
        response = client.post("/api/categories", json={"name": "drinks"}, headers=headers_a)
        assert response.status_code == 409

    def test_category_with_products_cannot_be_deleted(self, client, headers_a, category_a, coffee):
        response = client.delete(f"/api/categories/{category_a.id}", headers=headers_a)
        assert response.status_code == 409


class TestProductMappings:
    """/api/product-mappings"""

    def test_create_list_and_conflict(self, client, headers_a, coffee):
        body = {"externalProductId": "ext-1", "source": "uber", "productId": coffee.id}

        created = client.post("/api/product-mappings", json=body, headers=headers_a)
        duplicate = client.post("/api/product-mappings", json=body, headers=headers_a)
        listed = client.get("/api/product-mappings?source=UBER", headers=headers_a)

        assert created.status_code == 201
        assert created.json["data"]["source"] == "UBER"
        assert duplicate.status_code == 409
        assert [m["external_product_id"] for m in listed.json["data"]] == ["ext-1"]

    def test_update_and_delete(self, client, headers_a, coffee, bagel, coffee_mapping):
        updated = client.put(
            f"/api/product-mappings/{coffee_mapping.id}",
            json={"product_id": bagel.id},
            headers=headers_a,
        )
        deleted = client.delete(f"/api/product-mappings/{coffee_mapping.id}", headers=headers_a)

        assert updated.json["data"]["product_id"] == bagel.id
        assert deleted.status_code == 200
        assert client.get(f"/api/product-mappings/{coffee_mapping.id}", headers=headers_a).status_code == 404


class TestUsers:
    """/api/users"""

    def test_owner_creates_staff(self, client, headers_a):
        response = client.post("/api/users", json={
            "email": "New.Hire@acme.test",
            "name": "New Hire",
            "password": "Str0ng!Pass",
            "role": "STAFF",
        }, headers=headers_a)

        assert response.status_code == 201
        assert response.json["data"]["email"] == "new.hire@acme.test"

        login = client.post("/api/auth/login", json={"email": "new.hire@acme.test", "password": "Str0ng!Pass"})
        assert login.status_code == 200

    def test_weak_password_lists_every_problem(self, client, headers_a):
        response = client.post("/api/users", json={
            "email": "weak@acme.test", "name": "Weak", "password": "short",
        }, headers=headers_a)

        assert response.status_code == 400
        assert len(response.json["details"]["errors"]) >= 3

    def test_staff_cannot_manage_users(self, client, staff_headers_a):
        assert client.get("/api/users", headers=staff_headers_a).status_code == 403

    def test_deactivating_user_ends_their_sessions(self, client, headers_a, staff_a, staff_headers_a):
        response = client.delete(f"/api/users/{staff_a.id}", headers=headers_a)

        assert response.status_code == 200
        assert response.json["data"]["is_active"] is False
        assert client.get("/api/auth/me", headers=staff_headers_a).status_code == 401
