import pytest
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from pos.models import OperationalExpense

User = get_user_model()


# ---------- auth ----------

@pytest.mark.django_db
def test_login_returns_token_and_permissions(api_client, user_factory):
    user_factory(username="kasir1", password="rahasia123")

    resp = api_client.post("/api/auth/login/", {"username": "kasir1", "password": "rahasia123"}, format="json")

    assert resp.status_code == 200, resp.data
    assert resp.data["token"]
    assert resp.data["user"]["role"] == "cashier"
    assert "pos.create_orders" in resp.data["user"]["permissions"]
    assert "pos.view_reports" not in resp.data["user"]["permissions"]


@pytest.mark.django_db
def test_login_wrong_password(api_client, user_factory):
    user_factory(username="kasir2", password="rahasia123")
    resp = api_client.post("/api/auth/login/", {"username": "kasir2", "password": "salah"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_me(manager_client, manager_user):
    resp = manager_client.get("/api/auth/me/")
    assert resp.data["id"] == manager_user.id
    assert "pos.view_reports" in resp.data["permissions"]


@pytest.mark.django_db
def test_role_sets_staff_flags(user_factory):
    admin = user_factory(role="ADMIN ")
    manager = user_factory(role="manager")
    cashier = user_factory(role="cashier", is_staff=True)

    assert (admin.role, admin.is_superuser, admin.is_staff) == ("admin", True, True)
    assert (manager.is_superuser, manager.is_staff) == (False, True)
    assert (cashier.is_superuser, cashier.is_staff) == (False, False)


# ---------- users ----------

@pytest.mark.django_db
def test_admin_manages_users(admin_client):
    resp = admin_client.post("/api/users/", {
        "username": "kasir_baru", "password": "kasir12345", "role": "cashier",
    }, format="json")

    assert resp.status_code == 201, resp.data
    assert "password" not in resp.data
    assert User.objects.get(username="kasir_baru").check_password("kasir12345")


@pytest.mark.django_db
def test_user_create_requires_password(admin_client):
    resp = admin_client.post("/api/users/", {"username": "tanpa_pw", "role": "cashier"}, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_manager_cannot_manage_users(manager_client):
    assert manager_client.get("/api/users/").status_code == 403


@pytest.mark.django_db
def test_admin_cannot_delete_self(admin_client, admin_user):
    resp = admin_client.delete(f"/api/users/{admin_user.id}/")
    assert resp.status_code == 400
    assert User.objects.filter(pk=admin_user.pk).exists()


@pytest.mark.django_db
def test_user_with_sales_cannot_be_deleted(admin_client, cashier_user, checkout, product_factory):
    checkout([(product_factory(), 1)])
    resp = admin_client.delete(f"/api/users/{cashier_user.id}/")
    assert resp.status_code == 409


# ---------- expenses ----------

@pytest.mark.django_db
def test_admin_records_expense(admin_client, admin_user):
    resp = admin_client.post("/api/expenses/", {
        "name": "Sewa", "amount": "2500000", "category": "rent", "date": timezone.localdate().isoformat(),
    }, format="json")

    assert resp.status_code == 201, resp.data
    assert OperationalExpense.objects.get().created_by == admin_user


@pytest.mark.django_db
def test_expense_amount_must_be_positive(admin_client):
    resp = admin_client.post("/api/expenses/", {
        "name": "Nol", "amount": "0", "category": "misc", "date": "2024-05-01",
    }, format="json")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_manager_reads_but_cannot_write_expenses(manager_client, admin_user):
    OperationalExpense.objects.create(
        name="Air", amount=Decimal("100000"), category="utilities", date="2024-05-01", created_by=admin_user,
    )
    OperationalExpense.objects.create(
        name="Listrik", amount=Decimal("300000"), category="utilities", date="2024-05-03", created_by=admin_user,
    )
    OperationalExpense.objects.create(
        name="Iklan", amount=Decimal("50000"), category="marketing", date="2024-06-01", created_by=admin_user,
    )

    resp = manager_client.get("/api/expenses/", {"start_date": "2024-05-01", "end_date": "2024-05-31"})
    assert resp.status_code == 200
    assert len(resp.data["results"]) == 2
    assert Decimal(resp.data["total_amount"]) == Decimal("400000")
    assert Decimal(resp.data["by_category"]["utilities"]) == Decimal("400000")

    resp = manager_client.post("/api/expenses/", {
        "name": "Lain", "amount": "1000", "category": "misc", "date": "2024-05-01",
    }, format="json")
    assert resp.status_code == 403


@pytest.mark.django_db
def test_cashier_has_no_expense_access(cashier_client):
    assert cashier_client.get("/api/expenses/").status_code == 403
