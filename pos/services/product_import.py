"""
CSV product import.

Headers are matched case-insensitively against a list of aliases, so both the
English export headers and the Indonesian spreadsheet template import.
"""
import csv
import io
import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from pos.models import Category, Product, StockMovement

logger = logging.getLogger(__name__)

STRATEGIES = ("skip", "update", "overwrite")

ALIASES = {
    "name": ("name", "nama"),
    "price": ("price", "harga"),
    "stock": ("stock", "stok"),
    "cost_price": ("costprice", "cost_price", "harga_pokok"),
    "product_code": ("productcode", "product_code", "kode"),
    "category_name": ("categoryname", "category", "kategori"),
    "category_id": ("categoryid", "category_id"),
    "size": ("size", "ukuran"),
    "color": ("color", "warna"),
    "description": ("description", "deskripsi"),
    "is_active": ("isactive", "is_active", "aktif"),
}

TRUE_VALUES = {"1", "true", "yes", "ya", "y", "aktif"}


class RowError(Exception):
    pass


def _normalize_row(raw):
    lowered = {k.strip().lower(): (v or "").strip() for k, v in raw.items() if isinstance(k, str)}
    row = {}
    for field, names in ALIASES.items():
        for name in names:
            if lowered.get(name):
                row[field] = lowered[name]
                break
    return row


def _money(value, field):
    cleaned = "".join(ch for ch in value if ch.isdigit() or ch in ".-")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise RowError(f"Invalid {field}: {value!r}")
    if amount < 0:
        raise RowError(f"{field} cannot be negative")
    return amount


def _int(value, field):
    try:
        number = int(Decimal(value))
    except (InvalidOperation, ValueError):
        raise RowError(f"Invalid {field}: {value!r}")
    if number < 0:
        raise RowError(f"{field} cannot be negative")
    return number


class ProductImporter:
    def __init__(self, user=None, duplicate_strategy="skip", auto_create_category=False):
        if duplicate_strategy not in STRATEGIES:
            raise ValueError(f"duplicate_strategy must be one of {STRATEGIES}")
        self.user = user
        self.strategy = duplicate_strategy
        self.auto_create_category = auto_create_category
        self.categories = {c.name.strip().lower(): c for c in Category.objects.all()}
        # categories created by the current row, cached only once the row commits
        self.new_categories = {}
        self.results = []
        self.counts = {"created": 0, "updated": 0, "skipped": 0, "failed": 0}

    def _resolve_category(self, row):
        if row.get("category_id"):
            category = Category.objects.filter(pk=_int(row["category_id"], "category_id")).first()
            if category is None:
                raise RowError("Category not found")
            return category

        name = row.get("category_name")
        if not name:
            return None

        key = name.lower()
        if key in self.categories:
            return self.categories[key]
        if key in self.new_categories:
            return self.new_categories[key]
        if not self.auto_create_category:
            raise RowError(f"Category '{name}' not found")

        category, _ = Category.objects.get_or_create(name=name)
        self.new_categories[key] = category
        return category

    def _record_stock(self, product, before, note):
        if product.stock == before:
            return
        StockMovement.objects.create(
            product=product,
            movement_type=StockMovement.Type.IMPORT,
            quantity_delta=product.stock - before,
            before_stock=before,
            after_stock=product.stock,
            note=note,
            ref_model="Product",
            ref_id=product.pk,
            created_by=self.user,
        )

    def _update(self, product, row, category):
        before = product.stock
        overwrite = self.strategy == "overwrite"

        if row.get("name"):
            product.name = row["name"]
        if row.get("price"):
            product.price = _money(row["price"], "price")
        if row.get("stock"):
            product.stock = _int(row["stock"], "stock")
        if category is not None:
            product.category = category

        for field in ("size", "color", "description"):
            if row.get(field):
                setattr(product, field, row[field])
            elif overwrite:
                setattr(product, field, "")

        if row.get("cost_price"):
            product.cost_price = _money(row["cost_price"], "cost_price")
        elif overwrite:
            product.cost_price = Decimal("0")

        if row.get("is_active"):
            product.is_active = row["is_active"].lower() in TRUE_VALUES

        product.full_clean()
        product.save()
        self._record_stock(product, before, "CSV import update")
        return "overwritten" if overwrite else "updated"

    def _create(self, row, category):
        if not row.get("name") or not row.get("price"):
            raise RowError("Required columns: name, price, category")
        if category is None:
            raise RowError("Category is required")

        product = Product(
            name=row["name"],
            price=_money(row["price"], "price"),
            cost_price=_money(row["cost_price"], "cost_price") if row.get("cost_price") else Decimal("0"),
            stock=_int(row["stock"], "stock") if row.get("stock") else 0,
            category=category,
            product_code=row.get("product_code", ""),
            size=row.get("size", ""),
            color=row.get("color", ""),
            description=row.get("description", ""),
            is_active=row["is_active"].lower() in TRUE_VALUES if row.get("is_active") else True,
        )
        product.full_clean(exclude=["product_code"])
        product.save()
        self._record_stock(product, 0, "CSV import")
        return product

    def import_row(self, index, raw):
        row = _normalize_row(raw)
        self.new_categories = {}
        try:
            with transaction.atomic():
                result = self._import(row)
        except RowError as e:
            self.counts["failed"] += 1
            self.results.append({"row": index, "status": "failed", "error": str(e)})
            return
        except DjangoValidationError as e:
            self.counts["failed"] += 1
            self.results.append({"row": index, "status": "failed", "error": "; ".join(e.messages)})
            return

        self.categories.update(self.new_categories)
        self.counts["updated" if result["status"] == "overwritten" else result["status"]] += 1
        self.results.append({"row": index, **result})

    def _import(self, row):
        category = self._resolve_category(row)
        code = row.get("product_code")
        existing = Product.objects.filter(product_code=code).first() if code else None

        if existing is not None:
            if self.strategy == "skip":
                return {"status": "skipped", "error": "Duplicate product code", "id": existing.id}
            return {"status": self._update(existing, row, category), "id": existing.id}

        product = self._create(row, category)
        return {"status": "created", "id": product.id}

    def run(self, text: str):
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        for index, raw in enumerate(reader, start=1):
            self.import_row(index, raw)

        logger.info(
            "Product import finished: created=%s updated=%s skipped=%s failed=%s",
            self.counts["created"], self.counts["updated"], self.counts["skipped"], self.counts["failed"],
        )
        return {**self.counts, "total": len(self.results), "results": self.results}
