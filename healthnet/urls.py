"""
URL configuration for the HealthNet backend.

The ``urlpatterns`` list routes the Django admin (record-level CRUD for
operators) and the JSON API provided by the coordination app. OpenAPI
documentation is exposed at ``/swagger/`` and ``/redoc/``.
"""
from django.contrib import admin
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

api_info = openapi.Info(
    title="HealthNet Kenya API",
    default_version='v1',
    description="Counties, facilities, patients, triage, emergencies, dispatch, transfers and SHA claims.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('coordination.routers')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
