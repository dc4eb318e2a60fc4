"""DRF views for cart operations."""

from common.exceptions import ServiceError
from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .selectors import get_active_cart_for_user
from .serializers import AddItemSerializer, CartReadSerializer
from .services import remove_item


class CartDetailView(APIView):
    """Return the authenticated user's cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        examples=[
            OpenApiExample(
                "Cart",
                value={
                    "id": 1,
                    "items": [{"id": 10, "product": 5, "product_name": "Tank 60", "variant": None, "quantity": 2}],
                },
            )
        ],
    )
    def get(self, request):
        cart = get_active_cart_for_user(user=request.user)
        return Response(CartReadSerializer.from_cart(cart=cart).data, status=status.HTTP_200_OK)


class CartAddItemView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        request=AddItemSerializer,
        responses={
            201: inline_serializer(name="CartItemCreatedResponse", fields={"id": rf_serializers.IntegerField()}),
            400: inline_serializer(name="CartMutationError", fields={"detail": rf_serializers.CharField()}),
        },
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        try:
            item = serializer.save()
        except ServiceError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response({"id": item.id}, status=status.HTTP_201_CREATED)


class CartItemDeleteView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(tags=["Cart Endpoints"], summary="Delete cart item", responses={204: None})
    def delete(self, request, item_id: int):
        try:
            remove_item(user=request.user, item_id=item_id)
        except ServiceError as exc:
            return Response({"detail": str(exc)}, status=exc.status_code)
        return Response(status=status.HTTP_204_NO_CONTENT)
