"""
Messaging API Views
OTP login endpoints and the outbound message queue API.
"""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import generics, status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from apps.messaging.filters import OutboundMessageFilter
from apps.messaging.models import OutboundMessage
from apps.messaging.otp import OtpError, OtpService
from apps.messaging.serializers import (
    OutboundMessageSerializer,
    RequestOtpSerializer,
    VerifyOtpSerializer,
)
from apps.messaging.telegram.client import get_telegram_client

logger = logging.getLogger(__name__)


def _error(code: str, message: str, http_status: int) -> Response:
    return Response({'error': {'code': code, 'message': message}}, status=http_status)


class _OtpView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'otp'

    def get_service(self) -> OtpService:
        return OtpService(client=get_telegram_client())

    def invalid(self, serializer) -> Response:
        return _error('invalid-argument', 'Invalid request', status.HTTP_400_BAD_REQUEST)


class RequestOtpView(_OtpView):
    """
    POST /api/v1/messaging/otp/request/
    Send a login code to the Telegram chat linked to the phone number.
    """

    @extend_schema(request=RequestOtpSerializer, description="Send a one-time login code over Telegram")
    def post(self, request):
        serializer = RequestOtpSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)

        try:
            result = self.get_service().request_otp(serializer.validated_data['phoneNumber'])
        except OtpError as exc:
            return _error(exc.code, exc.message, exc.status_code)
        return Response(result, status=status.HTTP_200_OK)


class VerifyOtpView(_OtpView):
    """
    POST /api/v1/messaging/otp/verify/
    Exchange a valid code for an access token.
    """

    @extend_schema(request=VerifyOtpSerializer, description="Verify a login code and return an access token")
    def post(self, request):
        serializer = VerifyOtpSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid(serializer)

        data = serializer.validated_data
        try:
            result = self.get_service().verify_otp(data['phoneNumber'], data['code'])
        except OtpError as exc:
            return _error(exc.code, exc.message, exc.status_code)
        return Response(result, status=status.HTTP_200_OK)


class OutboundMessageListCreateView(generics.ListCreateAPIView):
    """
    GET  /api/v1/messaging/outbound/  list queue entries (filterable)
    POST /api/v1/messaging/outbound/  enqueue a send/edit/delete
    """
    queryset = OutboundMessage.objects.select_related('patient').all()
    serializer_class = OutboundMessageSerializer
    filterset_class = OutboundMessageFilter

    def perform_create(self, serializer):
        message = serializer.save()
        logger.info(f"Outbound {message.pk} {message.action} created via API ({message.status})")


class OutboundMessageDetailView(generics.RetrieveAPIView):
    queryset = OutboundMessage.objects.all()
    serializer_class = OutboundMessageSerializer
