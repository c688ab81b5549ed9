# pos/api/views_shift.py
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from pos.api.serializers_shift import ShiftCloseSerializer, ShiftOpenSerializer, ShiftSerializer
from pos.models_shift import CashierShift
from pos.permissions import is_admin_or_manager
from pos.services.shift_service import (
    close_shift,
    find_open_shift,
    open_shift,
    recompute_shift_totals,
    shift_report,
)


class ShiftCurrentView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        shift = find_open_shift(request.user)
        if not shift:
            return Response({"open": False, "shift": None}, status=200)

        recompute_shift_totals(shift)
        return Response({"open": True, "shift": ShiftSerializer(shift).data}, status=200)


class ShiftOpenView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = ShiftOpenSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        shift = open_shift(
            request.user,
            ser.validated_data["opening_balance"],
            note=ser.validated_data["note"].strip(),
        )
        return Response({"detail": "Shift opened.", "shift": ShiftSerializer(shift).data}, status=201)


class ShiftCloseView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = ShiftCloseSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        shift = close_shift(
            request.user,
            ser.validated_data["closing_balance"],
            note=ser.validated_data["note"].strip(),
        )
        return Response({
            "detail": "Shift closed.",
            "shift": ShiftSerializer(shift).data,
            "report": shift_report(shift),
        }, status=200)


class ShiftListView(APIView):
    """
    GET /api/shifts/
    - admin/manager: all shifts
    - cashier: own shifts only
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        qs = CashierShift.objects.select_related("cashier").order_by("-opened_at", "-id")
        if not is_admin_or_manager(request.user):
            qs = qs.filter(cashier=request.user)
        if request.query_params.get("status"):
            qs = qs.filter(status=request.query_params["status"].upper())
        return Response(ShiftSerializer(qs[:200], many=True).data, status=200)


class ShiftReportView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        qs = CashierShift.objects.select_related("cashier")
        if not is_admin_or_manager(request.user):
            qs = qs.filter(cashier=request.user)

        shift = qs.filter(pk=pk).first()
        if not shift:
            return Response({"detail": "Shift tidak ditemukan."}, status=404)

        recompute_shift_totals(shift)
        return Response({"shift": ShiftSerializer(shift).data, "report": shift_report(shift)}, status=200)
