from rest_framework import serializers

from .models import Period
from .services.generator import LOOKAHEAD_CHOICES


class GeneratePeriodsRequestSerializer(serializers.Serializer):
    as_of = serializers.DateField(required=False)
    lookahead = serializers.ChoiceField(choices=LOOKAHEAD_CHOICES, required=False)
    regenerate = serializers.BooleanField(required=False, default=False)


class PeriodSerializer(serializers.ModelSerializer):
    class Meta:
        model = Period
        fields = [
            "id",
            "name",
            "period_start",
            "period_end",
            "status",
            "total_tasks",
            "completed_tasks",
            "is_billed",
            "invoice_generated",
            "invoice",
        ]
        read_only_fields = fields
