from django.urls import path
from apps.messaging import views

app_name = 'messaging'

urlpatterns = [
    # OTP login bridge
    path('otp/request/', views.RequestOtpView.as_view(), name='otp-request'),
    path('otp/verify/', views.VerifyOtpView.as_view(), name='otp-verify'),

    # Outbound queue
    path('outbound/', views.OutboundMessageListCreateView.as_view(), name='outbound-list'),
    path('outbound/<int:pk>/', views.OutboundMessageDetailView.as_view(), name='outbound-detail'),
]
