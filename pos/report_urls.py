from django.urls import path
from . import report_views

urlpatterns = [
    path('sales/', report_views.sales_report_view, name='sales_report'),
    path('sales/pdf/', report_views.sales_report_pdf_view, name='sales_report_pdf'),
    path('sales/excel/', report_views.sales_report_excel_view, name='sales_report_excel'),
    path('sales/csv/', report_views.sales_report_csv_view, name='sales_report_csv'),
    path('expenses/excel/', report_views.expense_report_excel_view, name='expense_report_excel'),
]
