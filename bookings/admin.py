from django.contrib import admin
from .models import Booking, Passenger, SeatInventory


class PassengerInline(admin.TabularInline):
    model = Passenger
    extra = 0
    max_num = 0
    can_delete = False
    readonly_fields = ['name', 'age', 'gender', 'seat_number']

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['pnr', 'user', 'train', 'journey_date', 'num_passengers', 'total_fare',
                    'status', 'payment_status', 'booking_date']
    list_filter = ['status', 'payment_status', 'journey_date']
    search_fields = ['pnr', 'user__username', 'train__train_number']
    # Bookings are history: created, cancelled and paid only through the booking engine.
    readonly_fields = ['pnr', 'user', 'train', 'journey_date', 'num_passengers', 'total_fare',
                       'status', 'payment_status', 'payment_method', 'booking_date',
                       'confirmed_at', 'cancelled_at', 'paid_at']
    inlines = [PassengerInline]
    ordering = ['-booking_date']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SeatInventory)
class SeatInventoryAdmin(admin.ModelAdmin):
    list_display = ['train', 'journey_date', 'committed_seats', 'available_seats', 'updated_at']
    list_filter = ['journey_date']
    search_fields = ['train__train_number']
    readonly_fields = ['train', 'journey_date', 'committed_seats', 'version', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def available_seats(self, obj):
        return obj.available_seats
    available_seats.short_description = 'Available'
