"""Catalog API: product list and cached product detail."""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .cache import get_cached_product
from .selectors import get_product, list_products
from .serializers import ProductDetailSerializer, ProductListSerializer


class CatalogPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class ProductListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = ProductListSerializer
    pagination_class = CatalogPagination
    throttle_scope = "catalog"

    def get_queryset(self):
        params = self.request.query_params
        return list_products(category_slug=params.get("category"), search=params.get("search"))

    @extend_schema(
        tags=["Catalog"],
        summary="List products",
        parameters=[
            OpenApiParameter(name="category", description="Category slug", required=False, type=str),
            OpenApiParameter(name="search", description="Name contains", required=False, type=str),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class ProductDetailView(APIView):
    """Product detail served from the product cache.

    Stock mutations invalidate the entry, so `stock` here tracks orders.
    """

    permission_classes = [AllowAny]
    throttle_scope = "catalog"

    @extend_schema(tags=["Catalog"], summary="Get product detail", responses={200: ProductDetailSerializer})
    def get(self, request, product_id: int):
        def _load():
            product = get_product(product_id)
            return ProductDetailSerializer(product).data if product else None

        data = get_cached_product(product_id, _load)
        if data is None:
            return Response({"detail": "Not found."}, status=404)
        return Response(data)
