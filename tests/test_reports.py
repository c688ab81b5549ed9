import pytest
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from pos.models import OperationalExpense, Transaction
from pos.services.report_service import resolve_range


@pytest.mark.django_db
def test_sales_report(admin_client, checkout, product_factory, promotion_factory):
    product = product_factory(price=Decimal("50000"))
    promotion_factory(products=[product], discount_value=Decimal("10"))
    checkout([(product, 2)])
    checkout([(product, 1)], payment_method="QRIS")

    resp = admin_client.get("/api/reports/sales/", {"range": "7days"})

    assert resp.status_code == 200, resp.data
    data = resp.data
    assert data["transaction_count"] == 1
    assert Decimal(data["gross_sales"]) == Decimal("100000")
    assert Decimal(data["discounts"]["promo"]) == Decimal("10000")
    assert Decimal(data["net_sales"]) == Decimal("90000")
    assert Decimal(data["revenue"]) == Decimal("90000")
    assert data["payment_methods"][0]["payment_method"] == "CASH"
    assert data["top_products"][0]["quantity"] == 2
    assert len(data["daily"]) == 1


@pytest.mark.django_db
def test_reports_require_view_reports(cashier_client):
    assert cashier_client.get("/api/reports/sales/").status_code == 403
    assert cashier_client.get("/api/reports/financial/").status_code == 403
    assert cashier_client.get("/api/dashboard/stats/").status_code == 403


@pytest.mark.django_db
def test_invalid_date_is_400(manager_client):
    resp = manager_client.get("/api/reports/sales/", {"from": "2024-13-01"})
    assert resp.status_code == 400

    resp = manager_client.get("/api/reports/sales/", {"from": "2024-02-10", "to": "2024-02-01"})
    assert resp.status_code == 400


@pytest.mark.django_db
def test_financial_report(admin_client, admin_user, checkout, product_factory):
    product = product_factory(price=Decimal("50000"), cost_price=Decimal("30000"))
    checkout([(product, 2)])
    OperationalExpense.objects.create(
        name="Listrik", amount=Decimal("10000"), category="utilities",
        date=timezone.localdate(), created_by=admin_user,
    )

    resp = admin_client.get("/api/reports/financial/")

    assert resp.status_code == 200, resp.data
    data = resp.data
    assert Decimal(data["cogs"]) == Decimal("60000")
    assert Decimal(data["gross_profit"]) == Decimal("40000")
    assert Decimal(data["operating_expenses"]["total"]) == Decimal("10000")
    assert Decimal(data["net_profit"]) == Decimal("30000")
    assert data["gross_margin"] == 40.0
    assert data["operating_expenses"]["by_category"][0]["category"] == "utilities"
    assert data["categories"][0]["margin"] == 40.0
    assert data["growth"]["revenue"] is None


@pytest.mark.django_db
def test_financial_growth_against_previous_period(admin_client, cashier_user, checkout, product_factory):
    product = product_factory(price=Decimal("50000"), stock=20)
    checkout([(product, 2)])
    old = Transaction.objects.create(
        cashier=cashier_user, payment_method="CASH", status="COMPLETED",
        subtotal=Decimal("50000"), final_total=Decimal("50000"),
    )
    Transaction.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=12))

    resp = admin_client.get("/api/reports/financial/", {"range": "7days"})
    assert resp.data["growth"]["revenue"] == 100.0


@pytest.mark.django_db
def test_dashboard_stats(admin_client, checkout, product_factory, member_factory):
    product_factory(stock=2)
    product = product_factory(price=Decimal("25000"), stock=20)
    member_factory()
    checkout([(product, 2)])

    data = admin_client.get("/api/dashboard/stats/").data

    assert Decimal(data["today_sales"]) == Decimal("50000")
    assert data["today_transactions"] == 1
    assert data["low_stock_products"] == 1
    assert data["members"] == 1
    assert data["recent_transactions"][0]["status"] == "COMPLETED"


def test_resolve_range_explicit_dates():
    start, end = resolve_range({"from": "2024-01-01", "to": "2024-01-31"})
    assert timezone.localtime(start).date().isoformat() == "2024-01-01"
    assert timezone.localtime(end).date().isoformat() == "2024-01-31"


def test_resolve_range_months():
    start, end = resolve_range({"range": "3months"})
    assert 89 <= (end - start).days <= 93


@pytest.mark.django_db
def test_sales_csv_export(client, admin_user, checkout, product_factory):
    product = product_factory(name="Kaos Ekspor")
    checkout([(product, 1)])
    client.force_login(admin_user)

    resp = client.get("/reports/sales/csv/")

    assert resp.status_code == 200
    body = resp.content.decode()
    assert body.startswith("Invoice,Date,Cashier")
    assert "Kaos Ekspor" in body


@pytest.mark.django_db
def test_sales_excel_export(client, manager_user):
    client.force_login(manager_user)
    resp = client.get("/reports/sales/excel/")
    assert resp.status_code == 200
    assert resp["Content-Type"].startswith("application/vnd.openxmlformats")


@pytest.mark.django_db
def test_export_pages_redirect_cashier(client, cashier_user):
    client.force_login(cashier_user)
    resp = client.get("/reports/sales/csv/")
    assert resp.status_code == 302
