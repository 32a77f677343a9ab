from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from .models import Room, Reservation, Payment


class RoomSerializer(serializers.ModelSerializer):

    class Meta:
        model = Room
        fields = '__all__'


class PaymentSerializer(serializers.ModelSerializer):
    reservation_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Payment
        fields = ['id', 'reservation_id', 'amount', 'method', 'payment_date', 'created_at']


class ReservationSerializer(serializers.ModelSerializer):
    room = RoomSerializer(read_only=True)

    class Meta:
        model = Reservation
        fields = '__all__'

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['nights'] = instance.nights
        if getattr(instance, 'flag_synced', True) is False:
            data['warning'] = 'Room availability flag could not be updated'
        payment = self.context.get('payment')
        data['payment'] = PaymentSerializer(payment).data if payment else None
        return data


class StaySerializer(serializers.Serializer):
    check_in = serializers.DateField()
    check_out = serializers.DateField()

    def validate(self, data):
        if data['check_out'] <= data['check_in']:
            raise serializers.ValidationError("check_out must be after check_in")
        return data


class BookingRequestSerializer(StaySerializer):
    room_id = serializers.IntegerField()
    guest_name = serializers.CharField(max_length=150)
    guest_email = serializers.CharField(max_length=254)

    def validate_check_in(self, value):
        if value < timezone.localdate():
            raise serializers.ValidationError("Date cannot be in the past")
        return value


class PaymentRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    method = serializers.ChoiceField(choices=Payment.Method.choices, default=Payment.Method.CREDIT_CARD)
