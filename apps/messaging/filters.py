import django_filters

from apps.messaging.models import OutboundMessage


class OutboundMessageFilter(django_filters.FilterSet):
    scheduled_before = django_filters.IsoDateTimeFilter(field_name='scheduled_for', lookup_expr='lte')
    scheduled_after = django_filters.IsoDateTimeFilter(field_name='scheduled_for', lookup_expr='gte')

    class Meta:
        model = OutboundMessage
        fields = ['status', 'action', 'chat_id', 'patient']
