"""User routes under /api/v1/: JWT auth and the current profile."""

from django.urls import path

from .views import RefreshView, SignInView, current_user

urlpatterns = [
    path("auth/token/", SignInView.as_view(), name="token_obtain"),
    path("auth/token/refresh/", RefreshView.as_view(), name="token_refresh"),
    path("account/profile/", current_user, name="profile"),
]
