from rest_framework.routers import DefaultRouter

from apps.orders.views import DeliveryNoteViewSet, OrderViewSet, ReservationViewSet

router = DefaultRouter()
router.register("orders", OrderViewSet, basename="order")
router.register("reservations", ReservationViewSet, basename="reservation")
router.register("delivery-notes", DeliveryNoteViewSet, basename="delivery-note")

urlpatterns = router.urls
