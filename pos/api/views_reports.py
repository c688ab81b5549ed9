# pos/api/views_reports.py
from rest_framework.response import Response
from rest_framework.views import APIView

from pos.permissions import HasFeature
from pos.services.report_service import dashboard_stats, financial_report, resolve_range, sales_summary


class SalesReportAPIView(APIView):
    """GET /api/reports/sales/?range=7days|30days|3months|1year or ?from=&to="""
    permission_classes = [HasFeature("pos.view_reports")]

    def get(self, request):
        start, end = resolve_range(request.query_params)
        return Response(sales_summary(start, end))


class FinancialReportAPIView(APIView):
    """GET /api/reports/financial/?range=... (growth compares to the previous equal-length period)"""
    permission_classes = [HasFeature("pos.view_reports")]

    def get(self, request):
        start, end = resolve_range(request.query_params, default="30days")
        return Response(financial_report(start, end))


class DashboardStatsAPIView(APIView):
    permission_classes = [HasFeature("pos.view_reports")]

    def get(self, request):
        return Response(dashboard_stats())
