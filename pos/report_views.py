import csv
import io
import logging

import openpyxl
from django.http import HttpResponse
from django.shortcuts import render
from django.template.loader import render_to_string
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from xhtml2pdf import pisa

from .decorators import role_required
from .models import OperationalExpense, Transaction, TransactionItem
from .services.report_service import resolve_range, sales_summary

logger = logging.getLogger(__name__)

REPORT_ROLES = ["admin", "manager"]
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _range_or_default(request):
    try:
        return resolve_range(request.GET)
    except ValidationError:
        return resolve_range({})


def _sales_rows(start, end):
    items = (
        TransactionItem.objects
        .filter(
            transaction__status=Transaction.Status.COMPLETED,
            transaction__created_at__gte=start,
            transaction__created_at__lte=end,
        )
        .select_related("transaction", "transaction__cashier", "product", "product__category")
        .order_by("-transaction__created_at", "-transaction_id", "id")
    )
    for item in items:
        trx = item.transaction
        yield {
            "invoice": trx.invoice_number,
            "date": timezone.localtime(trx.created_at).strftime("%Y-%m-%d %H:%M"),
            "cashier": trx.cashier.display_name,
            "payment_method": trx.payment_method,
            "product_name": item.product.name,
            "category": item.product.category.name,
            "qty": item.quantity,
            "price": item.price,
            "subtotal": item.subtotal,
        }


SALES_HEADERS = ["Invoice", "Date", "Cashier", "Payment", "Product", "Category", "Qty", "Price", "Subtotal"]


def _row_values(row):
    return [
        row["invoice"], row["date"], row["cashier"], row["payment_method"],
        row["product_name"], row["category"], row["qty"], row["price"], row["subtotal"],
    ]


@role_required(REPORT_ROLES)
def sales_report_view(request):
    start, end = _range_or_default(request)
    return render(request, "pos/sales_report.html", {
        "rows": list(_sales_rows(start, end)),
        "summary": sales_summary(start, end),
        "start": timezone.localtime(start).date(),
        "end": timezone.localtime(end).date(),
        "query": request.GET.urlencode(),
    })


@role_required(REPORT_ROLES)
def sales_report_excel_view(request):
    start, end = _range_or_default(request)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Sales Report"
    ws.append(SALES_HEADERS)

    for row in _sales_rows(start, end):
        ws.append(_row_values(row))

    summary = sales_summary(start, end)
    ws2 = wb.create_sheet("Summary")
    ws2.append(["Metric", "Value"])
    for key in ("gross_sales", "net_sales", "tax", "revenue", "transaction_count", "average_transaction"):
        ws2.append([key, summary[key]])
    for key, value in summary["discounts"].items():
        ws2.append([f"discount_{key}", value])

    response = HttpResponse(content_type=XLSX)
    response["Content-Disposition"] = "attachment; filename=sales_report.xlsx"
    wb.save(response)
    return response


@role_required(REPORT_ROLES)
def sales_report_csv_view(request):
    start, end = _range_or_default(request)

    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = "attachment; filename=sales_report.csv"
    writer = csv.writer(response)
    writer.writerow(SALES_HEADERS)
    for row in _sales_rows(start, end):
        writer.writerow(_row_values(row))
    return response


@role_required(REPORT_ROLES)
def sales_report_pdf_view(request):
    start, end = _range_or_default(request)

    html = render_to_string("pos/sales_report_pdf.html", {
        "rows": list(_sales_rows(start, end)),
        "summary": sales_summary(start, end),
        "start": timezone.localtime(start).date(),
        "end": timezone.localtime(end).date(),
    })
    result = io.BytesIO()
    pdf = pisa.CreatePDF(io.BytesIO(html.encode("UTF-8")), dest=result)

    if pdf.err:
        logger.error("Sales report PDF generation failed")
        return HttpResponse("PDF generation error", status=500)
    return HttpResponse(result.getvalue(), content_type="application/pdf")


@role_required(REPORT_ROLES)
def expense_report_excel_view(request):
    expenses = OperationalExpense.objects.select_related("created_by").order_by("-date", "-id")
    if request.GET.get("start_date"):
        expenses = expenses.filter(date__gte=request.GET["start_date"])
    if request.GET.get("end_date"):
        expenses = expenses.filter(date__lte=request.GET["end_date"])

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Expenses"
    ws.append(["Date", "Name", "Category", "Amount", "Description", "Created By"])

    for e in expenses:
        ws.append([
            e.date.strftime("%Y-%m-%d"),
            e.name,
            e.category,
            e.amount,
            e.description,
            e.created_by.display_name,
        ])

    response = HttpResponse(content_type=XLSX)
    response["Content-Disposition"] = "attachment; filename=expense_report.xlsx"
    wb.save(response)
    return response
