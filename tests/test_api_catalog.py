from decimal import Decimal
import uuid

from tests.factories import auth_headers, future, make_product, make_variant


def money(value) -> Decimal:
    return Decimal(str(value))


class TestProductsApi:
    async def test_admin_creates_product_with_variant(self, client, admin):
        response = await client.post(
            "/api/v1/products",
            json={
                "name": "Wireless Earbuds",
                "sku": "EAR-001",
                "base_price": "89.99",
                "allow_preorder": True,
                "preorder_price": "79.99",
                "preorder_limit": 50,
                "expected_stock_date": future(20).isoformat(),
            },
            headers=auth_headers(admin),
        )
        assert response.status_code == 201, response.text
        product = response.json()
        assert product["allow_preorder"] is True
        assert product["total_preorders"] == 0
        assert product["variants"] == []

        response = await client.post(
            f"/api/v1/products/{product['id']}/variants",
            json={"color": "White", "size": "One Size", "initial_quantity": 12, "low_stock_threshold": 5},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201, response.text
        variant = response.json()
        assert variant["name"] == "White / One Size"
        assert variant["inventory"]["quantity"] == 12
        assert variant["inventory"]["is_low_stock"] is False

        detail = (await client.get(f"/api/v1/products/{product['id']}")).json()
        assert len(detail["variants"]) == 1

    async def test_duplicate_sku(self, client, admin):
        payload = {"name": "Cable", "sku": "CBL-1", "base_price": "9.99"}
        await client.post("/api/v1/products", json=payload, headers=auth_headers(admin))
        response = await client.post("/api/v1/products", json=payload, headers=auth_headers(admin))
        assert response.status_code == 409

    async def test_customers_cannot_manage_catalog(self, client, customer):
        response = await client.post(
            "/api/v1/products",
            json={"name": "Cable", "base_price": "9.99"},
            headers=auth_headers(customer),
        )
        assert response.status_code == 403

    async def test_update_preorder_settings(self, client, db, admin):
        product = await make_product(db)
        response = await client.put(
            f"/api/v1/products/{product.id}",
            json={"allow_preorder": True, "preorder_limit": 25},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["allow_preorder"] is True
        assert response.json()["preorder_limit"] == 25

    async def test_list_filters(self, client, db):
        await make_product(db, name="Red Sneaker")
        await make_product(db, name="Blue Sneaker", allow_preorder=True)
        hidden = await make_product(db, name="Old Sneaker")
        hidden.is_active = False
        await db.commit()

        listing = (await client.get("/api/v1/products", params={"search": "sneaker"})).json()
        assert listing["total"] == 2

        preorderable = (await client.get("/api/v1/products", params={"allow_preorder": "true"})).json()
        assert [p["name"] for p in preorderable["items"]] == ["Blue Sneaker"]

        response = await client.get(f"/api/v1/products/{hidden.id}")
        assert response.status_code == 404

    async def test_unknown_product(self, client):
        response = await client.get(f"/api/v1/products/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["type"] == "ProductNotFoundError"


class TestInventoryApi:
    async def test_variant_availability(self, client, db):
        product = await make_product(db)
        stocked = await make_variant(db, product, quantity=3)
        unstocked = await make_variant(db, product, quantity=None, color="Green")

        body = (await client.get(f"/api/v1/inventory/variants/{stocked.id}")).json()
        assert body["quantity"] == 3
        assert body["is_in_stock"] is True
        assert body["is_low_stock"] is True

        body = (await client.get(f"/api/v1/inventory/variants/{unstocked.id}")).json()
        assert body["quantity"] == 0
        assert body["is_in_stock"] is False

    async def test_admin_sets_stock_and_lists_low_stock(self, client, db, admin):
        product = await make_product(db)
        plenty = await make_variant(db, product, quantity=50)
        unstocked = await make_variant(db, product, quantity=None, color="Green")

        response = await client.put(
            f"/api/v1/inventory/variants/{unstocked.id}",
            json={"quantity": 2, "low_stock_threshold": 4},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.text
        assert response.json()["quantity"] == 2
        assert response.json()["is_low_stock"] is True

        low = (await client.get("/api/v1/inventory/low-stock", headers=auth_headers(admin))).json()
        ids = [item["product_variant_id"] for item in low["items"]]
        assert str(unstocked.id) in ids
        assert str(plenty.id) not in ids

    async def test_negative_stock_is_invalid(self, client, db, admin):
        product = await make_product(db)
        variant = await make_variant(db, product)
        response = await client.put(
            f"/api/v1/inventory/variants/{variant.id}",
            json={"quantity": -1},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    async def test_low_stock_is_admin_only(self, client, customer):
        response = await client.get("/api/v1/inventory/low-stock", headers=auth_headers(customer))
        assert response.status_code == 403
