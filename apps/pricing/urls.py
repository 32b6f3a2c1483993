from rest_framework.routers import DefaultRouter

from apps.pricing.views import DiscountRuleViewSet, PricelistViewSet, TimeDependentPriceRuleViewSet

router = DefaultRouter()
router.register("discounts", DiscountRuleViewSet, basename="discount")
router.register("pricelists", PricelistViewSet, basename="pricelist")
router.register("price-rules", TimeDependentPriceRuleViewSet, basename="price-rule")

urlpatterns = router.urls
