from django.apps import AppConfig


class RoomBookingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'room_booking'
