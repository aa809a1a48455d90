# tickets/urls.py
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r'tickets', views.TicketViewSet, basename='ticket')
router.register(r'work-orders', views.WorkOrderViewSet, basename='work-order')
router.register(r'sparepart-requests', views.SparepartRequestViewSet, basename='sparepart-request')
router.register(r'zoom/accounts', views.ZoomAccountViewSet, basename='zoom-account')
router.register(r'notifications', views.NotificationViewSet, basename='notification')

urlpatterns = router.urls
