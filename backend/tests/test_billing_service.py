"""
Invoice tests.

Verifies:
- Numbering is INV-YYYYMMDD-NNNN and restarts per day
- Creation prices lines, takes stock and writes one "out" movement per line
- Failed creation leaves stock, invoices and the ledger untouched
- Deleting restores stock without a compensating movement
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from branchstock.extensions import db
from branchstock.models import Invoice, InvoiceItem, Payment, Product, StockMovement
from branchstock.services import billing_service
from branchstock.services.billing_service import BillingError, InvoiceFilters


def _payload(branch, items, **extra):
    payload = {
        "customer": {"name": "Priya Shah", "email": "PRIYA@example.com"},
        "items": items,
        "branch_id": branch.id,
        "payment_method": "card",
    }
    payload.update(extra)
    return payload


class TestInvoiceNumbering:
    def test_sequence_per_day(self, db_session):
        day = datetime(2024, 1, 31, 10)
        assert billing_service.next_invoice_number(day) == "INV-20240131-0001"
        assert billing_service.next_invoice_number(day) == "INV-20240131-0002"
        assert billing_service.next_invoice_number(datetime(2024, 2, 1)) == "INV-20240201-0001"
        assert billing_service.next_invoice_number(day) == "INV-20240131-0003"

    def test_created_invoices_get_consecutive_numbers(self, product, branch_a, user):
        first = billing_service.create_invoice(_payload(branch_a, [{"product_id": product.id, "quantity": 1}]), user.id)
        second = billing_service.create_invoice(_payload(branch_a, [{"product_id": product.id, "quantity": 1}]), user.id)

        assert first["invoice_number"].startswith("INV-")
        assert first["invoice_number"].endswith("-0001")
        assert second["invoice_number"].endswith("-0002")


class TestCreateInvoice:
    def test_totals_stock_and_movements(self, product, make_product, branch_a, user):
        cable = make_product(price_cents=250, stock=4)
        invoice = billing_service.create_invoice(
            _payload(
                branch_a,
                [
                    {"product_id": product.id, "quantity": 3, "discount_cents": 500},
                    {"product_id": cable.id, "quantity": 2},
                ],
                tax_rate=10,
                discount_cents=100,
            ),
            user.id,
        )

        # 3 x 1000 - 500 + 2 x 250 = 3000; tax 300; minus invoice discount 100
        assert invoice["subtotal_cents"] == 3000
        assert invoice["tax_cents"] == 300
        assert invoice["total_cents"] == 3200
        assert invoice["customer"]["email"] == "priya@example.com"
        assert [i["total_cents"] for i in invoice["items"]] == [2500, 500]

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 47
        assert db.session.get(Product, cable.id).stock == 2

        movements = db.session.query(StockMovement).order_by(StockMovement.id).all()
        assert [(m.product_id, m.type, m.quantity) for m in movements] == [
            (product.id, "out", 3),
            (cable.id, "out", 2),
        ]
        assert all(m.reason == f"Invoice {invoice['invoice_number']}" for m in movements)

    def test_price_override(self, product, branch_a, user):
        invoice = billing_service.create_invoice(
            _payload(branch_a, [{"product_id": product.id, "quantity": 2, "price_cents": 900}]), user.id
        )
        assert invoice["subtotal_cents"] == 1800

    def test_tax_rounds_to_whole_cents(self, make_product, branch_a, user):
        item = make_product(price_cents=333)
        invoice = billing_service.create_invoice(
            _payload(branch_a, [{"product_id": item.id, "quantity": 1}], tax_rate=5), user.id
        )
        assert invoice["tax_cents"] == 17

    def test_insufficient_stock_checks_combined_lines(self, product, branch_a, user):
        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(
                _payload(branch_a, [
                    {"product_id": product.id, "quantity": 30},
                    {"product_id": product.id, "quantity": 30},
                ]),
                user.id,
            )
        assert str(exc.value) == "Failed to create invoice: Insufficient stock for product USB-C Cable"

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 50
        assert db.session.query(Invoice).count() == 0
        assert db.session.query(StockMovement).count() == 0

    def test_product_id_must_be_integer(self, product, branch_a, user):
        # "1" and 1 would otherwise be counted as two products in the stock check
        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(
                _payload(branch_a, [
                    {"product_id": product.id, "quantity": 30},
                    {"product_id": str(product.id), "quantity": 30},
                ]),
                user.id,
            )
        assert exc.value.status_code == 400
        assert str(exc.value) == "Failed to create invoice: Item product_id must be an integer"

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 50
        assert db.session.query(Invoice).count() == 0

    def test_sequence_race_is_retried(self, product, branch_a, user, monkeypatch):
        real_next = billing_service.next_invoice_number
        calls = []

        def flaky_next(now=None):
            calls.append(now)
            if len(calls) == 1:
                raise billing_service.InvoiceNumberConflict("taken")
            return real_next(now)

        monkeypatch.setattr(billing_service, "next_invoice_number", flaky_next)

        invoice = billing_service.create_invoice(_payload(branch_a, [{"product_id": product.id, "quantity": 2}]), user.id)

        assert len(calls) == 2
        assert invoice["invoice_number"].endswith("-0001")
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 48

    def test_other_integrity_errors_are_not_retried(self, product, branch_a, user, monkeypatch):
        calls = []

        def failing_movement(**kwargs):
            calls.append(kwargs)
            raise IntegrityError("INSERT INTO stock_movements", {}, Exception("CHECK constraint failed"))

        monkeypatch.setattr(billing_service, "record_movement", failing_movement)

        with pytest.raises(IntegrityError):
            billing_service.create_invoice(_payload(branch_a, [{"product_id": product.id, "quantity": 2}]), user.id)

        assert len(calls) == 1
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 50
        assert db.session.query(Invoice).count() == 0

    def test_unknown_product(self, branch_a, user):
        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(_payload(branch_a, [{"product_id": 31337, "quantity": 1}]), user.id)
        assert exc.value.status_code == 404
        assert "Product with ID 31337 not found" in str(exc.value)

    def test_product_from_other_branch(self, make_product, branch_a, branch_b, user):
        elsewhere = make_product(name="Lamp", branch_id=branch_b.id)
        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(_payload(branch_a, [{"product_id": elsewhere.id, "quantity": 1}]), user.id)
        assert "Product Lamp is not in branch Main Branch" in str(exc.value)

    @pytest.mark.parametrize(
        "payload_change,message",
        [
            ({"items": []}, "Invoice must contain at least one item"),
            ({"customer": {"email": "x@example.com"}}, "Customer name is required"),
            ({"payment_method": "cheque"}, "payment_method must be one of"),
            ({"tax_rate": 150}, "tax_rate must be a number between 0 and 100"),
            ({"branch_id": None}, "branch_id is required"),
        ],
    )
    def test_payload_validation(self, product, branch_a, user, payload_change, message):
        payload = _payload(branch_a, [{"product_id": product.id, "quantity": 1}])
        payload.update(payload_change)

        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(payload, user.id)

        assert str(exc.value).startswith("Failed to create invoice: ")
        assert message in str(exc.value)

    def test_unknown_branch(self, product, user):
        with pytest.raises(BillingError) as exc:
            billing_service.create_invoice(
                {"customer": {"name": "A"}, "items": [{"product_id": product.id, "quantity": 1}], "branch_id": 999},
                user.id,
            )
        assert exc.value.status_code == 404


class TestInvoiceLifecycle:
    def _invoice(self, product, branch_a, user, quantity=5):
        return billing_service.create_invoice(
            _payload(branch_a, [{"product_id": product.id, "quantity": quantity}]), user.id
        )

    def test_update_mutable_fields(self, product, branch_a, user):
        invoice = self._invoice(product, branch_a, user)

        updated = billing_service.update_invoice(
            invoice_id=invoice["id"],
            data={"payment_status": "paid", "customer": {"phone": "555-0101"}, "notes": "Delivered"},
        )

        assert updated["payment_status"] == "paid"
        assert updated["customer"]["name"] == "Priya Shah"
        assert updated["customer"]["phone"] == "555-0101"
        assert updated["notes"] == "Delivered"

    def test_update_rejects_money_fields(self, product, branch_a, user):
        invoice = self._invoice(product, branch_a, user)
        with pytest.raises(BillingError) as exc:
            billing_service.update_invoice(invoice_id=invoice["id"], data={"total_cents": 1})
        assert "Field not allowed: total_cents" in str(exc.value)

    def test_update_customer_must_be_object(self, product, branch_a, user):
        invoice = self._invoice(product, branch_a, user)
        with pytest.raises(BillingError) as exc:
            billing_service.update_invoice(invoice_id=invoice["id"], data={"customer": "Bob"})

        assert exc.value.status_code == 400
        assert str(exc.value) == "Failed to update invoice: Customer details are required"
        db.session.expire_all()
        assert db.session.get(Invoice, invoice["id"]).customer_name == "Priya Shah"

    def test_delete_restores_stock_without_ledger_entry(self, product, branch_a, user):
        invoice = self._invoice(product, branch_a, user, quantity=5)
        payment = Payment(
            amount_cents=invoice["total_cents"],
            payment_method="card",
            payment_type="credit",
            description="Invoice settlement",
            branch_id=branch_a.id,
            created_by_user_id=user.id,
            invoice_id=invoice["id"],
        )
        db.session.add(payment)
        db.session.commit()
        movements_before = db.session.query(StockMovement).count()

        billing_service.delete_invoice(invoice["id"])

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 50
        assert db.session.get(Invoice, invoice["id"]) is None
        assert db.session.query(InvoiceItem).count() == 0
        assert db.session.query(StockMovement).count() == movements_before
        assert db.session.get(Payment, payment.id).invoice_id is None

    def test_delete_unknown(self, db_session):
        with pytest.raises(BillingError) as exc:
            billing_service.delete_invoice(8080)
        assert exc.value.status_code == 404

    def test_document(self, product, branch_a, user):
        invoice = self._invoice(product, branch_a, user, quantity=2)
        doc = billing_service.invoice_document(invoice["id"])

        assert doc["invoice"]["id"] == invoice["id"]
        assert doc["document"]["total_cents"] == 2000
        assert doc["document"]["branch"]["name"] == "Main Branch"

    def test_list_filters(self, make_invoice, branch_b):
        make_invoice(100, datetime(2024, 1, 5), customer="Ravi Kumar")
        make_invoice(200, datetime(2024, 1, 6), customer="Ana Lopez", branch=branch_b)

        by_customer = billing_service.list_invoices(InvoiceFilters(customer="ravi"))
        assert [i["customer"]["name"] for i in by_customer["invoices"]] == ["Ravi Kumar"]

        by_branch = billing_service.list_invoices(InvoiceFilters(branch_id=branch_b.id))
        assert by_branch["pagination"]["total"] == 1

        by_date = billing_service.list_invoices(InvoiceFilters(date_from=datetime(2024, 1, 6)))
        assert [i["total_cents"] for i in by_date["invoices"]] == [200]
