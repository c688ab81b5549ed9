import pytest
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile

from pos.models import Category, Product, StockMovement


def csv_file(text, name="produk.csv"):
    return SimpleUploadedFile(name, text.encode("utf-8"), content_type="text/csv")


@pytest.mark.django_db
def test_anyone_logged_in_can_browse(cashier_client, product_factory, api_client):
    product_factory()
    assert cashier_client.get("/api/products/").status_code == 200
    assert api_client.get("/api/products/").status_code == 401


@pytest.mark.django_db
def test_cashier_cannot_write_catalog(cashier_client, category_factory):
    category = category_factory()
    resp = cashier_client.post("/api/products/", {
        "name": "Kaos", "price": "10000", "category_id": category.id,
    }, format="json")
    assert resp.status_code == 403


@pytest.mark.django_db
def test_manager_creates_product_with_generated_code(manager_client, category_factory):
    category = category_factory()
    resp = manager_client.post("/api/products/", {
        "name": "Kemeja Flanel",
        "price": "150000",
        "cost_price": "90000",
        "stock": 7,
        "category_id": category.id,
        "size": "L",
    }, format="json")

    assert resp.status_code == 201, resp.data
    assert resp.data["product_code"].startswith("PRD-")
    assert resp.data["category"]["id"] == category.id
    assert resp.data["image_url"] is None


@pytest.mark.django_db
def test_cost_above_price_rejected(manager_client, category_factory):
    resp = manager_client.post("/api/products/", {
        "name": "Rugi", "price": "1000", "cost_price": "2000", "category_id": category_factory().id,
    }, format="json")
    assert resp.status_code == 400
    assert "cost_price" in resp.data


@pytest.mark.django_db
def test_product_filters(cashier_client, product_factory):
    product_factory(name="Topi Merah", stock=0)
    hat = product_factory(name="Topi Biru", stock=3)
    product_factory(name="Sabuk", is_active=False)

    names = [p["name"] for p in cashier_client.get("/api/products/", {"search": "topi", "in_stock": "true"}).data]
    assert names == ["Topi Biru"]

    data = cashier_client.get("/api/products/", {"active": "false"}).data
    assert [p["name"] for p in data] == ["Sabuk"]

    data = cashier_client.get("/api/products/", {"category": hat.category_id}).data
    assert [p["id"] for p in data] == [hat.id]


@pytest.mark.django_db
def test_category_with_products_cannot_be_deleted(manager_client, product_factory):
    product = product_factory()
    resp = manager_client.delete(f"/api/categories/{product.category_id}/")
    assert resp.status_code == 409


@pytest.mark.django_db
def test_sold_product_cannot_be_deleted(manager_client, checkout, product_factory):
    product = product_factory()
    checkout([(product, 1)])
    resp = manager_client.delete(f"/api/products/{product.id}/")
    assert resp.status_code == 409
    assert Product.objects.filter(pk=product.id).exists()


@pytest.mark.django_db
def test_category_list_has_product_count(cashier_client, product_factory, category_factory):
    category = category_factory(name="Aksesoris")
    product_factory(category=category)
    product_factory(category=category)

    row = next(c for c in cashier_client.get("/api/categories/").data if c["id"] == category.id)
    assert row["product_count"] == 2


# ---------- CSV import ----------

@pytest.mark.django_db
def test_import_creates_and_reports_failures(manager_client, category_factory):
    category_factory(name="Kaos")
    text = (
        "\ufeffNama,Harga,Stok,Kategori,Kode\n"
        "Kaos Putih,75000,5,kaos,KA-1\n"
        "Kaos Rusak,abc,1,Kaos,KA-2\n"
        "Kaos Hantu,1000,1,Tidak Ada,KA-3\n"
    )

    resp = manager_client.post("/api/products/import/", {"file": csv_file(text)}, format="multipart")

    assert resp.status_code == 200, resp.data
    assert (resp.data["created"], resp.data["failed"], resp.data["total"]) == (1, 2, 3)
    assert [r["status"] for r in resp.data["results"]] == ["created", "failed", "failed"]

    product = Product.objects.get(product_code="KA-1")
    assert product.price == Decimal("75000")
    assert product.stock == 5
    assert StockMovement.objects.get(product=product).movement_type == StockMovement.Type.IMPORT


@pytest.mark.django_db
def test_import_auto_creates_category(manager_client):
    text = "name,price,category\nGelang,20000,Perhiasan\n"
    resp = manager_client.post(
        "/api/products/import/",
        {"file": csv_file(text), "auto_create_category": "true"},
        format="multipart",
    )
    assert resp.data["created"] == 1
    assert Product.objects.get(name="Gelang").category.name == "Perhiasan"


@pytest.mark.django_db
def test_import_failed_row_rolls_back_new_category(manager_client):
    text = "name,price,category\nRusak,abc,Baru\nBagus,1000,Baru\n"
    resp = manager_client.post(
        "/api/products/import/",
        {"file": csv_file(text), "auto_create_category": "true"},
        format="multipart",
    )

    assert resp.data["failed"] == 1
    assert resp.data["created"] == 1
    assert resp.data["results"][1]["status"] == "created"
    assert Category.objects.filter(name="Baru").count() == 1
    assert Product.objects.get(name="Bagus").category.name == "Baru"


@pytest.mark.django_db
def test_import_duplicate_strategies(manager_client, product_factory):
    product = product_factory(product_code="DUP-1", stock=2, size="M", price=Decimal("10000"), cost_price=Decimal("5000"))
    text = f"name,price,stock,category,product_code\nBaru,12000,9,{product.category.name},DUP-1\n"

    resp = manager_client.post("/api/products/import/", {"file": csv_file(text)}, format="multipart")
    assert resp.data["skipped"] == 1

    resp = manager_client.post(
        "/api/products/import/", {"file": csv_file(text), "duplicate_strategy": "update"}, format="multipart",
    )
    assert resp.data["updated"] == 1
    product.refresh_from_db()
    assert (product.name, product.stock, product.size) == ("Baru", 9, "M")

    resp = manager_client.post(
        "/api/products/import/", {"file": csv_file(text), "duplicate_strategy": "overwrite"}, format="multipart",
    )
    assert resp.data["results"][0]["status"] == "overwritten"
    product.refresh_from_db()
    assert product.size == ""


@pytest.mark.django_db
def test_import_requires_write_access(cashier_client):
    resp = cashier_client.post("/api/products/import/", {"file": csv_file("name\n")}, format="multipart")
    assert resp.status_code == 403


# ---------- shop ----------

@pytest.mark.django_db
def test_shop_admin_writes_everyone_reads(admin_client, cashier_client):
    resp = admin_client.post("/api/shop/", {
        "name": "Toko Maju", "address": "Jl. Merdeka 1", "phone": "0211234",
    }, format="json")
    assert resp.status_code == 201, resp.data
    assert resp.data["logo_url"] is None

    listing = cashier_client.get("/api/shop/")
    assert listing.status_code == 200
    assert listing.data[0]["receipt_footer"] == "Terima kasih atas kunjungan Anda!"

    resp = cashier_client.patch(f"/api/shop/{resp.data['id']}/", {"name": "Lain"}, format="json")
    assert resp.status_code == 403
