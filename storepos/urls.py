"""
URL configuration for storepos project.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.http import HttpResponse

from pos import views


def home(request):
    return HttpResponse("StorePOS API - Backend Aktif")


urlpatterns = [
    path('', home),
    path('admin/', admin.site.urls),
    path('reports/', include('pos.report_urls')),
    path('api/', include('pos.urls')),

    path('cashier/', views.cashier_view, name='cashier'),
    path('cashier/update/<int:product_id>/', views.cashier_update_line, name='cashier_update_line'),
    path('cashier/remove/<int:product_id>/', views.cashier_remove_line, name='cashier_remove_line'),
    path('cashier/checkout/', views.cashier_checkout, name='cashier_checkout'),
    path('transactions/<int:transaction_id>/receipt.pdf', views.transaction_receipt_pdf, name='transaction_receipt_pdf'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
