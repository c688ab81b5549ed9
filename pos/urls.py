from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views_payments
from .views import (
    CategoryViewSet, LoginView, MemberViewSet, OperationalExpenseViewSet,
    ProductViewSet, PromotionViewSet, ShopViewSet, UserViewSet, VoucherViewSet, me_view,
)
from .views_transactions import TransactionViewSet

router = DefaultRouter()
router.register(r'categories', CategoryViewSet, basename='category')
router.register(r'products', ProductViewSet, basename='product')
router.register(r'members', MemberViewSet, basename='member')
router.register(r'vouchers', VoucherViewSet, basename='voucher')
router.register(r'promotions', PromotionViewSet, basename='promotion')
router.register(r'transactions', TransactionViewSet, basename='transaction')
router.register(r'expenses', OperationalExpenseViewSet, basename='expense')
router.register(r'shop', ShopViewSet, basename='shop')
router.register(r'users', UserViewSet, basename='user')

urlpatterns = [
    path('auth/login/', LoginView.as_view(), name='api_login'),
    path('auth/me/', me_view, name='api_me'),

    path('payments/bank-transfer/confirm/', views_payments.bank_transfer_confirm, name='bank_transfer_confirm'),
    path('payments/midtrans/token/', views_payments.midtrans_token, name='midtrans_token'),
    path('payments/midtrans/webhook/', views_payments.midtrans_webhook, name='midtrans_webhook'),

    path('', include('pos.api.urls')),
    path('', include(router.urls)),
]
