from django.urls import path

from .views import MovementListView

app_name = "inventory"

urlpatterns = [
    path("movements/", MovementListView.as_view(), name="movement-list"),
]
