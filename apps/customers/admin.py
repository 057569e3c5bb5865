from django.contrib import admin
from .models import Address


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'user', 'city', 'state', 'pincode', 'address_type', 'is_default')
    list_filter = ('address_type', 'state')
    search_fields = ('user__email', 'full_name', 'pincode', 'city')
