"""
Admin configuration for the booking app.
"""

from django.contrib import admin
from .models import BookingRequest, Service, SiteSetting


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    """Admin interface for Service model."""

    list_display = ['title', 'order_index', 'is_active', 'created_at']
    list_filter = ['is_active']
    list_editable = ['order_index', 'is_active']
    search_fields = ['title', 'description']
    ordering = ['order_index', 'id']


@admin.register(BookingRequest)
class BookingRequestAdmin(admin.ModelAdmin):
    """Admin interface for BookingRequest model."""

    list_display = ['name', 'service_type', 'preferred_date', 'preferred_time', 'status', 'created_at']
    list_filter = ['status', 'service_type', 'preferred_date']
    search_fields = ['name', 'email', 'phone', 'notes']
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Contact', {
            'fields': ('name', 'email', 'phone')
        }),
        ('Appointment', {
            'fields': ('service_type', 'preferred_date', 'preferred_time', 'notes', 'status')
        }),
        ('Metadata', {
            'fields': ('created_at', 'ip_address'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'ip_address']


@admin.register(SiteSetting)
class SiteSettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'updated_at']
    search_fields = ['key']
    readonly_fields = ['updated_at']
