import itertools
import pytest
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from faker import Faker
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from pos.models import Category, Member, Product, Promotion, Voucher

faker = Faker()
seq = itertools.count(1)
User = get_user_model()


@pytest.fixture
def api_client():
    """Unauthenticated APIClient."""
    return APIClient()


@pytest.fixture
def user_factory():
    def create_user(role=User.ROLE_CASHIER, **kwargs):
        defaults = {
            "username": f"{faker.user_name()}{next(seq)}",
            "email": faker.unique.email(),
            "role": role,
        }
        defaults.update(kwargs)
        password = defaults.pop("password", "testpass123")
        user = User(**defaults)
        user.set_password(password)
        user.save()
        return user
    return create_user


def _token_client(user):
    client = APIClient()
    token, _ = Token.objects.get_or_create(user=user)
    client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
    return client


@pytest.fixture
def admin_user(user_factory):
    return user_factory(role=User.ROLE_ADMIN)


@pytest.fixture
def manager_user(user_factory):
    return user_factory(role=User.ROLE_MANAGER)


@pytest.fixture
def cashier_user(user_factory):
    return user_factory(role=User.ROLE_CASHIER)


@pytest.fixture
def admin_client(admin_user):
    return _token_client(admin_user)


@pytest.fixture
def manager_client(manager_user):
    return _token_client(manager_user)


@pytest.fixture
def cashier_client(cashier_user):
    return _token_client(cashier_user)


@pytest.fixture
def category_factory():
    def create_category(**kwargs):
        defaults = {"name": f"{faker.word().title()} {next(seq)}"}
        defaults.update(kwargs)
        return Category.objects.create(**defaults)
    return create_category


@pytest.fixture
def product_factory(category_factory):
    def create_product(**kwargs):
        if "category" not in kwargs:
            kwargs["category"] = category_factory()
        defaults = {
            "name": f"{faker.word().title()} {next(seq)}",
            "price": Decimal("50000"),
            "cost_price": Decimal("30000"),
            "stock": 10,
        }
        defaults.update(kwargs)
        return Product.objects.create(**defaults)
    return create_product


@pytest.fixture
def member_factory():
    def create_member(**kwargs):
        defaults = {
            "name": faker.name(),
            "phone": "08" + faker.unique.numerify("##########"),
            "email": faker.unique.email(),
        }
        defaults.update(kwargs)
        return Member.objects.create(**defaults)
    return create_member


@pytest.fixture
def voucher_factory():
    def create_voucher(**kwargs):
        now = timezone.now()
        defaults = {
            "code": faker.unique.bothify("VC####").upper(),
            "name": "Voucher test",
            "type": Voucher.Type.PERCENTAGE,
            "value": Decimal("10"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
        }
        defaults.update(kwargs)
        return Voucher.objects.create(**defaults)
    return create_voucher


@pytest.fixture
def promotion_factory():
    def create_promotion(products=(), categories=(), **kwargs):
        now = timezone.now()
        defaults = {
            "name": faker.sentence(nb_words=3),
            "type": Promotion.Type.PRODUCT_DISCOUNT,
            "discount_type": Promotion.DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
        }
        defaults.update(kwargs)
        promotion = Promotion.objects.create(**defaults)
        if products:
            promotion.products.set(products)
        if categories:
            promotion.categories.set(categories)
        return promotion
    return create_promotion


@pytest.fixture
def checkout(cashier_client):
    """POST a checkout as the cashier; returns the response."""
    def do_checkout(items, client=None, **extra):
        payload = {
            "items": [{"product_id": p.id, "quantity": q} for p, q in items],
            "payment_method": "CASH",
        }
        payload.update(extra)
        return (client or cashier_client).post("/api/transactions/", payload, format="json")
    return do_checkout
