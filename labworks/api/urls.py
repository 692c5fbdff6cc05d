"""
Labworks API URLs.

Include this in your project's urlpatterns:

    path('api/labworks/', include('labworks.api.urls')),
"""

from rest_framework.routers import DefaultRouter

from .views import MaterialLotViewSet, MaterialViewSet, WorksheetViewSet

router = DefaultRouter()
router.register("worksheets", WorksheetViewSet)
router.register("materials", MaterialViewSet)
router.register("lots", MaterialLotViewSet)

urlpatterns = router.urls
