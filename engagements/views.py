import logging

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.utils import get_current_business

from .models import Engagement
from .serializers import GeneratePeriodsRequestSerializer, PeriodSerializer
from .services.generator import generate_for_engagement, regenerate_periods

logger = logging.getLogger(__name__)


class GeneratePeriodsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk: int):
        business = get_current_business(request.user)
        if business is None:
            return Response({"detail": "Business not found."}, status=status.HTTP_404_NOT_FOUND)

        try:
            engagement = Engagement.objects.select_related("service").get(pk=pk, business=business)
        except Engagement.DoesNotExist:
            return Response(status=status.HTTP_404_NOT_FOUND)

        serializer = GeneratePeriodsRequestSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        if params.get("regenerate"):
            result = regenerate_periods(engagement, as_of=params.get("as_of"), lookahead=params.get("lookahead"))
        else:
            result = generate_for_engagement(engagement, as_of=params.get("as_of"), lookahead=params.get("lookahead"))

        logger.info(
            "Period generation requested",
            extra={"actor_id": getattr(request.user, "id", None), "business_id": business.id, "engagement_id": engagement.id},
        )
        payload = result.as_dict()
        payload["periods"] = PeriodSerializer(engagement.periods.order_by("period_start"), many=True).data
        return Response(payload, status=status.HTTP_200_OK)
