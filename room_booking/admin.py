from django.contrib import admin

from .models import Room, Reservation, Payment


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ('number', 'room_type', 'price_per_night', 'is_available')
    list_filter = ('room_type', 'is_available')
    search_fields = ('number',)


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ('created_at',)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ('id', 'room', 'guest_name', 'check_in', 'check_out', 'total_price', 'status')
    list_filter = ('status',)
    search_fields = ('guest_name', 'guest_email')
    # Status changes go through the booking engine so the room flag stays in sync.
    readonly_fields = ('status', 'total_price', 'created_at')
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'reservation', 'amount', 'method', 'payment_date')
    list_filter = ('method',)
