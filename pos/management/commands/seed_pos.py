from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from pos.models import Category, Member, Product, Promotion, Shop, Voucher


class Command(BaseCommand):
    help = 'Seed demo data for the POS (users, catalog, member, voucher, promotion). Safe to run twice.'

    def add_arguments(self, parser):
        parser.add_argument('--admin-password', default='admin123')
        parser.add_argument('--cashier-password', default='kasir123')

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()

        users = [
            ('admin', 'admin@storepos.local', User.ROLE_ADMIN, options['admin_password']),
            ('kasir', 'kasir@storepos.local', User.ROLE_CASHIER, options['cashier_password']),
        ]
        for username, email, role, password in users:
            user, created = User.objects.get_or_create(username=username, defaults={'email': email, 'role': role})
            if created:
                user.set_password(password)
                user.save()
                self.stdout.write(f'  + user {username} ({role})')

        Shop.objects.get_or_create(
            name='StorePOS',
            defaults={'address': 'Jl. Contoh No. 1', 'phone': '021000000'},
        )

        categories = {}
        for name in ('Kaos', 'Celana', 'Aksesoris'):
            categories[name], _ = Category.objects.get_or_create(name=name)

        products = [
            ('PRD-SEED-001', 'Kaos Polos Hitam', 'Kaos', '75000', '40000', 25, 'M', 'Hitam'),
            ('PRD-SEED-002', 'Kaos Polos Putih', 'Kaos', '75000', '40000', 20, 'L', 'Putih'),
            ('PRD-SEED-003', 'Celana Chino', 'Celana', '185000', '110000', 12, '32', 'Khaki'),
            ('PRD-SEED-004', 'Topi Baseball', 'Aksesoris', '55000', '25000', 4, '', 'Navy'),
        ]
        for code, name, cat, price, cost, stock, size, color in products:
            _, created = Product.objects.get_or_create(
                product_code=code,
                defaults={
                    'name': name,
                    'category': categories[cat],
                    'price': Decimal(price),
                    'cost_price': Decimal(cost),
                    'stock': stock,
                    'size': size,
                    'color': color,
                },
            )
            if created:
                self.stdout.write(f'  + product {name}')

        Member.objects.get_or_create(
            phone='081234567890',
            defaults={'name': 'Member Demo', 'email': 'member@storepos.local', 'points': 10},
        )

        now = timezone.now()
        Voucher.objects.get_or_create(
            code='HEMAT10',
            defaults={
                'name': 'Hemat 10%',
                'type': Voucher.Type.PERCENTAGE,
                'value': Decimal('10'),
                'min_purchase': Decimal('100000'),
                'max_discount': Decimal('50000'),
                'max_uses': 100,
                'max_uses_per_user': 1,
                'start_date': now,
                'end_date': now + timedelta(days=30),
            },
        )

        promo, created = Promotion.objects.get_or_create(
            name='Beli 2 Gratis 1 Kaos',
            defaults={
                'type': Promotion.Type.BUY_X_GET_Y,
                'discount_type': Promotion.DiscountType.PERCENTAGE,
                'discount_value': Decimal('100'),
                'buy_quantity': 2,
                'get_quantity': 1,
                'start_date': now,
                'end_date': now + timedelta(days=30),
            },
        )
        if created:
            promo.categories.add(categories['Kaos'])

        self.stdout.write(self.style.SUCCESS('POS seed data ready.'))
