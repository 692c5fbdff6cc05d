"""
URL configuration for Labworks API tests.

Used as ROOT_URLCONF in test settings via @pytest.mark.urls.
"""

from django.urls import include, path

urlpatterns = [
    path("api/labworks/", include("labworks.api.urls")),
]
