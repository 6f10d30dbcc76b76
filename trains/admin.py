from django.contrib import admin
from .models import Train


@admin.register(Train)
class TrainAdmin(admin.ModelAdmin):
    list_display = ['train_number', 'train_name', 'source', 'destination', 'departure_time', 'total_seats', 'is_active']
    list_filter = ['is_active', 'source', 'destination']
    search_fields = ['train_number', 'train_name', 'source', 'destination']
    ordering = ['train_number']
