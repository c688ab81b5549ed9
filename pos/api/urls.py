from django.urls import path

from pos.api.views_reports import DashboardStatsAPIView, FinancialReportAPIView, SalesReportAPIView
from pos.api.views_shift import (
    ShiftCurrentView, ShiftOpenView, ShiftCloseView,
    ShiftListView, ShiftReportView
)

urlpatterns = [
    path("shifts/current/", ShiftCurrentView.as_view(), name="shift_current"),
    path("shifts/open/", ShiftOpenView.as_view(), name="shift_open"),
    path("shifts/close/", ShiftCloseView.as_view(), name="shift_close"),
    path("shifts/", ShiftListView.as_view(), name="shift_list"),
    path("shifts/<int:pk>/report/", ShiftReportView.as_view(), name="shift_report"),

    path("reports/sales/", SalesReportAPIView.as_view(), name="api_sales_report"),
    path("reports/financial/", FinancialReportAPIView.as_view(), name="api_financial_report"),
    path("dashboard/stats/", DashboardStatsAPIView.as_view(), name="dashboard_stats"),
]
