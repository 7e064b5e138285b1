"""
HTTP surface tests.

Verifies:
- Every endpoint answers the {success, data | message} envelope
- Missing or unknown X-User-Id returns 401
- Service status codes (400/404/409) reach the client unchanged
"""

import pytest

from branchstock.extensions import db
from branchstock.models import Product, StockMovement


# =============================================================================
# AUTHENTICATION - 401
# =============================================================================


class TestActingUser:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/branches"),
            ("POST", "/api/branches"),
            ("GET", "/api/products"),
            ("POST", "/api/products/1/stock"),
            ("GET", "/api/invoices"),
            ("GET", "/api/payments"),
            ("GET", "/api/users"),
            ("POST", "/api/transfers"),
            ("GET", "/api/transfers"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/reports/profit-loss"),
            ("GET", "/api/dashboard"),
        ],
    )
    def test_requires_user_header(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json() == {"success": False, "message": "Authentication required"}

    def test_unknown_user(self, client, db_session):
        resp = client.get("/api/branches", headers={"X-User-Id": "4040"})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or inactive user"

    def test_deactivated_user(self, client, db_session, user, headers):
        user.is_active = False
        db_session.commit()

        resp = client.get("/api/branches", headers=headers)
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"


# =============================================================================
# ENVELOPES AND ERROR CODES
# =============================================================================


class TestEnvelopes:
    def test_unknown_route(self, client, db_session):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"success": False, "message": "Resource not found"}

    def test_create_branch(self, client, headers):
        resp = client.post(
            "/api/branches",
            json={"name": "Harbour", "address": "1 Pier Road", "email": "HARBOUR@Example.com"},
            headers=headers,
        )
        body = resp.get_json()

        assert resp.status_code == 201
        assert body["success"] is True
        assert body["message"] == "Branch created successfully"
        assert body["data"]["email"] == "harbour@example.com"

    def test_create_branch_conflict(self, client, headers, branch_a):
        resp = client.post("/api/branches", json={"name": "main branch", "address": "x"}, headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["success"] is False

    def test_create_branch_missing_fields(self, client, headers):
        resp = client.post("/api/branches", json={"name": "Nowhere"}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Missing required fields: address"

    def test_product_list_pagination(self, client, headers, make_product):
        for _ in range(3):
            make_product()

        resp = client.get("/api/products?page=2&limit=2", headers=headers)
        data = resp.get_json()["data"]

        assert resp.status_code == 200
        assert len(data["products"]) == 1
        assert data["pagination"] == {"current": 2, "pages": 2, "total": 3, "limit": 2}

    def test_limit_is_capped(self, client, headers, product):
        resp = client.get("/api/products?limit=100000", headers=headers)
        assert resp.get_json()["data"]["pagination"]["limit"] == 100

    def test_product_sku_conflict(self, client, headers, product, branch_a):
        resp = client.post(
            "/api/products",
            json={
                "name": "Another cable", "sku": product.sku, "category": "Electronics",
                "price_cents": 100, "cost_price_cents": 50, "branch_id": branch_a.id,
            },
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "Product with this SKU already exists"

    def test_product_update_cannot_move_branch(self, client, headers, product, branch_b):
        resp = client.put(f"/api/products/{product.id}", json={"branch_id": branch_b.id}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Field not allowed: branch_id"

    def test_stock_update(self, client, headers, product):
        resp = client.post(
            f"/api/products/{product.id}/stock",
            json={"quantity": 60, "type": "out", "reason": "Audit"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Failed to update stock: Insufficient stock"

        resp = client.post(
            f"/api/products/{product.id}/stock",
            json={"quantity": 5, "type": "in", "reason": "Delivery"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["stock"] == 55

    def test_bad_invoice_date_filter(self, client, headers):
        resp = client.get("/api/invoices?date_from=yesterday", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Dates must be ISO-8601"

    def test_create_user_hides_hash(self, client, headers):
        resp = client.post(
            "/api/users",
            json={"name": "Maya Chen", "email": "maya@example.com", "password": "Password123!"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert "password_hash" not in resp.get_json()["data"]

    def test_invoice_flow(self, client, headers, product, branch_a):
        resp = client.post(
            "/api/invoices",
            json={
                "customer": {"name": "Walk-in"},
                "items": [{"product_id": product.id, "quantity": 4}],
                "branch_id": branch_a.id,
                "payment_method": "cash",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        invoice = resp.get_json()["data"]
        assert invoice["total_cents"] == 4000

        resp = client.get(f"/api/invoices/{invoice['id']}/document", headers=headers)
        assert resp.get_json()["data"]["document"]["invoice_number"] == invoice["invoice_number"]

        resp = client.delete(f"/api/invoices/{invoice['id']}", headers=headers)
        assert resp.status_code == 200

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 50


# =============================================================================
# TRANSFERS
# =============================================================================


class TestTransferRoutes:
    def test_create_and_fetch(self, client, headers, product, branch_a, branch_b):
        resp = client.post(
            "/api/transfers",
            json={
                "product_id": product.id,
                "from_branch_id": branch_a.id,
                "to_branch_id": branch_b.id,
                "quantity": 10,
                "reason": "Rebalance",
            },
            headers=headers,
        )
        body = resp.get_json()
        assert resp.status_code == 201
        assert body["message"] == "Transfer completed successfully"

        transfer_id = body["data"]["id"]
        resp = client.get(f"/api/transfers/{transfer_id}", headers=headers)
        assert resp.get_json()["data"]["status"] == "completed"

        db.session.expire_all()
        moved = db.session.get(Product, product.id)
        assert moved.stock == 40
        assert moved.branch_id == branch_b.id
        assert db.session.query(StockMovement).filter_by(transfer_id=transfer_id).count() == 2

    def test_missing_field(self, client, headers, product, branch_a):
        resp = client.post(
            "/api/transfers",
            json={"product_id": product.id, "from_branch_id": branch_a.id, "quantity": 1, "reason": "x"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Missing required field: to_branch_id"

    def test_precondition_status_codes(self, client, headers, product, branch_a, branch_b):
        base = {
            "product_id": product.id,
            "from_branch_id": branch_a.id,
            "to_branch_id": branch_b.id,
            "quantity": 1,
            "reason": "x",
        }

        resp = client.post("/api/transfers", json={**base, "product_id": 9999}, headers=headers)
        assert resp.status_code == 404

        resp = client.post("/api/transfers", json={**base, "quantity": 999}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"].startswith("Failed to create transfer: Insufficient stock")

    def test_cancel_completed(self, client, headers, product, branch_a, branch_b):
        created = client.post(
            "/api/transfers",
            json={
                "product_id": product.id, "from_branch_id": branch_a.id,
                "to_branch_id": branch_b.id, "quantity": 1, "reason": "x",
            },
            headers=headers,
        ).get_json()["data"]

        resp = client.put(f"/api/transfers/{created['id']}/cancel", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Failed to cancel transfer: Only pending transfers can be cancelled"

    def test_list_rejects_unknown_status(self, client, headers):
        resp = client.get("/api/transfers?status=lost", headers=headers)
        assert resp.status_code == 400


# =============================================================================
# REPORTS AND DASHBOARD
# =============================================================================


class TestReportRoutes:
    def test_sales_report_bad_period(self, client, headers):
        resp = client.get("/api/reports/sales?period=hourly", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_reports_answer_envelopes(self, client, headers, product):
        for path in ("/api/reports/sales", "/api/reports/stock", "/api/reports/profit-loss", "/api/reports/payments"):
            resp = client.get(path, headers=headers)
            assert resp.status_code == 200, path
            assert resp.get_json()["success"] is True

    def test_dashboard(self, client, headers, product):
        resp = client.get("/api/dashboard?period=weekly", headers=headers)
        data = resp.get_json()["data"]

        assert resp.status_code == 200
        assert data["summary"]["period"] == "weekly"
        assert len(data["sales_data"]) == 7
        assert data["stats"]["total_products"] == 1
