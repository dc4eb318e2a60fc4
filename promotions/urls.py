from django.urls import path

from .views import ActiveCouponsView, CouponEligibilityView

app_name = "promotions"

urlpatterns = [
    path("active/", ActiveCouponsView.as_view(), name="active-coupons"),
    path("eligibility/", CouponEligibilityView.as_view(), name="coupon-eligibility"),
]
