"""Print-order API views.

Exposes the print-order services via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.

- ``PrintOrderViewSet``: a parent's own orders (``/print-orders/``).
- ``AdminPrintOrderViewSet``: operator console (``/admin/print-orders/``).
- ``MixamWebhookView``: signed vendor events (``/webhooks/mixam/``).
"""

from __future__ import annotations

from typing import Callable

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.print_orders.config import FulfillmentConfig
from modules.print_orders.constants import WEBHOOK_SIGNATURE_HEADER, AuditSource
from modules.print_orders.dtos import (
    CreatePrintOrderDTO,
    PrintableFilesDTO,
    PrintableMetadataDTO,
    ShippingAddressDTO,
    UpdatePrintableAssetsDTO,
)
from modules.print_orders.exceptions import (
    InvalidOrderStatus,
    PrintOrderNotFound,
    PrintOrderValidationFailed,
    RejectionReasonRequired,
    VendorAPIError,
    VendorCancellationRefused,
    VendorSubmissionFailed,
    WebhookConfigurationError,
    WebhookSignatureError,
)
from modules.print_orders.filters import PrintOrderFilter
from modules.print_orders.models import PrintOrder
from modules.print_orders.notifications import EmailNotificationSink
from modules.print_orders.repositories import PrintOrderDjangoRepository
from modules.print_orders.serializers import (
    AdminPrintOrderListSerializer,
    AdminPrintOrderSerializer,
    CancelSerializer,
    CreatePrintOrderSerializer,
    ParentPrintOrderSerializer,
    RejectSerializer,
    SubmissionResultSerializer,
    UpdatePrintableAssetsSerializer,
)
from modules.print_orders.services import (
    AdminActionService,
    PrintOrderService,
    build_admin_service,
)
from modules.print_orders.webhooks import WebhookIngestor

NOT_FOUND = {"detail": "Print order not found."}


def _actor_id(request: Request) -> str:
    return str(request.user.pk)


def _run_admin_action(call: Callable[[], Response]) -> Response:
    """Translate domain exceptions raised by an admin action into HTTP."""
    try:
        return call()
    except PrintOrderNotFound:
        return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
    except RejectionReasonRequired as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
    except PrintOrderValidationFailed as exc:
        return Response(
            {"detail": "Printable assets failed validation.", "errors": exc.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )
    except (InvalidOrderStatus, VendorCancellationRefused) as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
    except VendorSubmissionFailed as exc:
        return Response(
            {
                "detail": str(exc),
                "transient": exc.transient,
                "fulfillment_status": "on_hold",
            },
            status=status.HTTP_502_BAD_GATEWAY,
        )
    except VendorAPIError as exc:
        return Response(
            {"detail": str(exc), "transient": exc.transient},
            status=status.HTTP_502_BAD_GATEWAY,
        )


# ---------------------------------------------------------------------------
# Parent API
# ---------------------------------------------------------------------------


class PrintOrderViewSet(GenericViewSet):
    """A parent's print orders.

    Uses ``PrintOrderService`` with an injected repository (DIP).  Orders
    belonging to someone else are reported as not found.
    """

    queryset = PrintOrder.objects.all()
    filterset_class = PrintOrderFilter
    ordering_fields = ["created_at", "fulfillment_status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = PrintOrderService(repository=PrintOrderDjangoRepository())

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None = None
        if self.action == "create":
            throttle_scope = "print_order_creation"
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._service.list_for_parent(_actor_id(self.request))

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/print-orders/"""
        serializer = CreatePrintOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = CreatePrintOrderDTO(
                parent_uid=_actor_id(request),
                story_id=data["story_id"],
                book_id=data["book_id"],
                shipping_address=ShippingAddressDTO(**data["shipping_address"]),
                contact_email=data["contact_email"],
                contact_phone=data["contact_phone"],
                quantity=data["quantity"],
                printable_files=PrintableFilesDTO(**data.get("printable_files", {})),
                printable_metadata=PrintableMetadataDTO(**data["printable_metadata"]),
                requires_approval=data["requires_approval"],
            )
        except ValidationError as exc:
            return Response(
                {
                    "detail": "Invalid print order.",
                    "errors": exc.errors(include_url=False, include_context=False),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        order = self._service.create_order(dto)
        out = ParentPrintOrderSerializer(order)
        return Response(out.data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/print-orders/"""
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = ParentPrintOrderSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/print-orders/{pk}/"""
        try:
            order = self._service.get_for_parent(pk, _actor_id(request))
        except PrintOrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(ParentPrintOrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def pay(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/print-orders/{pk}/pay/

        Marks the order paid.  Allowed for the owning parent and for staff.
        """
        actor_id = _actor_id(request)
        try:
            if not request.user.is_staff:
                self._service.get_for_parent(pk, actor_id)
            source = AuditSource.ADMIN if request.user.is_staff else AuditSource.PARENT
            order = self._service.mark_paid(pk, actor_id, source=source)
        except PrintOrderNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(ParentPrintOrderSerializer(order).data)


# ---------------------------------------------------------------------------
# Admin API
# ---------------------------------------------------------------------------


class AdminPrintOrderViewSet(GenericViewSet):
    """Operator console for print orders (staff only).

    Uses ``AdminActionService`` built from settings; the vendor client is
    shared across requests.
    """

    queryset = PrintOrder.objects.all()
    permission_classes = [IsAdminUser]
    filterset_class = PrintOrderFilter
    search_fields = ["id", "parent_uid", "story_id", "mixam_order_id"]
    ordering_fields = ["created_at", "updated_at", "fulfillment_status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._repo = PrintOrderDjangoRepository()

    @property
    def service(self) -> AdminActionService:
        if not hasattr(self, "_service"):
            self._service = build_admin_service()
        return self._service

    def get_queryset(self):
        return self._repo.list()

    def _detail(self, order: PrintOrder) -> Response:
        order = self._repo.get_by_id(str(order.id)) or order
        return Response(AdminPrintOrderSerializer(order).data)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/print-orders/"""
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = AdminPrintOrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/print-orders/{pk}/"""
        order = self._repo.get_by_id(str(pk))
        if not order:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(AdminPrintOrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def validate(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/validate/"""
        return _run_admin_action(
            lambda: self._detail(self.service.validate(pk, _actor_id(request)))
        )

    @action(detail=True, methods=["post"])
    def approve(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/approve/"""
        return _run_admin_action(
            lambda: self._detail(self.service.approve(pk, _actor_id(request)))
        )

    @action(detail=True, methods=["post"])
    def submit(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/submit/"""

        def call() -> Response:
            result = self.service.submit(pk, _actor_id(request))
            return Response(SubmissionResultSerializer(result.model_dump()).data)

        return _run_admin_action(call)

    @action(detail=True, methods=["post"])
    def resubmit(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/resubmit/

        Cancels the previous vendor order (best-effort), then submits anew.
        """

        def call() -> Response:
            result = self.service.resubmit(pk, _actor_id(request))
            return Response(SubmissionResultSerializer(result.model_dump()).data)

        return _run_admin_action(call)

    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/reject/  body: ``{reason}``"""
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data["reason"]

        def call() -> Response:
            self.service.reject(pk, _actor_id(request), reason)
            return Response({"ok": True})

        return _run_admin_action(call)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/cancel/"""
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data["reason"]
        return _run_admin_action(
            lambda: self._detail(self.service.cancel(pk, _actor_id(request), reason))
        )

    @action(detail=True, methods=["post"], url_path="refresh-status")
    def refresh_status(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/refresh-status/"""
        return _run_admin_action(
            lambda: self._detail(self.service.refresh_status(pk, _actor_id(request)))
        )

    @action(detail=True, methods=["post"])
    def assets(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/assets/"""
        serializer = UpdatePrintableAssetsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dto = UpdatePrintableAssetsDTO(
            printable_files=PrintableFilesDTO(**data["printable_files"]),
            printable_metadata=PrintableMetadataDTO(**data["printable_metadata"]),
        )
        return _run_admin_action(
            lambda: self._detail(
                self.service.update_assets(pk, dto, _actor_id(request))
            )
        )

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/print-orders/{pk}/mark-paid/"""
        return _run_admin_action(
            lambda: self._detail(self.service.mark_paid(pk, _actor_id(request)))
        )


# ---------------------------------------------------------------------------
# Vendor webhook
# ---------------------------------------------------------------------------


class MixamWebhookView(APIView):
    """POST /api/v1/webhooks/mixam/

    Authenticated by HMAC signature only.  After the signature verifies
    the vendor always gets 200 so it stops retrying.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        config = FulfillmentConfig.from_settings()
        ingestor = WebhookIngestor(
            repository=PrintOrderDjangoRepository(),
            notifier=EmailNotificationSink(config.notify_emails),
            webhook_secret=config.webhook_secret,
        )
        raw_body = request.body
        signature = request.headers.get(WEBHOOK_SIGNATURE_HEADER)

        try:
            outcome = ingestor.handle(raw_body, signature)
        except WebhookConfigurationError:
            return Response(
                {"detail": "Webhook receiver is not configured."},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        except WebhookSignatureError:
            return Response(
                {"detail": "Invalid signature."},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        return Response(
            {"received": True, "processed": outcome.processed},
            status=status.HTTP_200_OK,
        )
