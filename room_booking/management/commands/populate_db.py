from decimal import Decimal

from django.core.management.base import BaseCommand
from room_booking.models import Room

ROOM_TYPES = ['Standard', 'Deluxe', 'Suite']
PRICES = [Decimal('100.00'), Decimal('150.00'), Decimal('250.00')]


class Command(BaseCommand):
    help = 'Populate database with sample hotel rooms'

    def add_arguments(self, parser):
        parser.add_argument('--count', type=int, default=10, help='Number of rooms to create')

    def handle(self, *args, **options):
        for i in range(1, options['count'] + 1):
            room_data = {
                'room_type': ROOM_TYPES[i % 3],
                'price_per_night': PRICES[i % 3],
            }
            room, created = Room.objects.get_or_create(
                number=str(i),
                defaults=room_data
            )

            if created:
                self.stdout.write(f'Created room: {room.number} - {room.room_type}')
            else:
                self.stdout.write(f'Room {room.number} already exists')

        self.stdout.write(
            self.style.SUCCESS('Successfully populated database with sample data')
        )
