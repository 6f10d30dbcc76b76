"""
URL configuration for trains app.
"""
from django.urls import path
from .views import TrainListView, TrainAvailabilityView

urlpatterns = [
    path('', TrainListView.as_view(), name='train_list'),
    path('<int:train_id>/availability/', TrainAvailabilityView.as_view(), name='train_availability'),
]
