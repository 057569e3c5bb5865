from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .models import Address
from .serializers import AddressSerializer
from .services import CustomerService


class AddressViewSet(viewsets.ModelViewSet):
    """
    CRUD for the current user's addresses.
    GET/POST/PUT/PATCH/DELETE /api/v1/customers/addresses/
    """
    serializer_class = AddressSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return Address.objects.filter(user=self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        address = CustomerService.create_address(request.user, **serializer.validated_data)
        return Response(self.get_serializer(address).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        address = CustomerService.update_address(
            request.user,
            kwargs['pk'],
            dict(serializer.validated_data),
        )
        return Response(self.get_serializer(address).data)

    def destroy(self, request, *args, **kwargs):
        CustomerService.delete_address(request.user, kwargs['pk'])
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], url_path='set-default')
    def set_default(self, request, pk=None):
        """
        POST /api/v1/customers/addresses/{id}/set-default/
        """
        address = CustomerService.set_default_address(request.user, pk)
        return Response(self.get_serializer(address).data)
