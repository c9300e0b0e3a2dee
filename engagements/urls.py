from django.urls import path

from .views import GeneratePeriodsView


app_name = "engagements"

urlpatterns = [
    path("<int:pk>/generate-periods/", GeneratePeriodsView.as_view(), name="generate_periods"),
]
