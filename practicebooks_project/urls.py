from django.conf import settings
from django.contrib import admin
from django.urls import include, path


def _build_urlpatterns():
    patterns = [
        path("api/engagements/", include("engagements.urls")),
    ]

    if settings.ENABLE_DJANGO_ADMIN:
        patterns.insert(0, path("admin/", admin.site.urls))

    return patterns


urlpatterns = _build_urlpatterns()
