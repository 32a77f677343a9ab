from django.http import JsonResponse
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from .catalog import RoomCatalog
from .dates import parse_iso_date
from .engine import BookingEngine
from .exceptions import Conflict, InvalidRequest, NotFound, ReservationError, StorageFailure
from .models import Room, Reservation
from .serializers import (
    BookingRequestSerializer,
    PaymentRequestSerializer,
    PaymentSerializer,
    ReservationSerializer,
    RoomSerializer,
    StaySerializer,
)
from .settlement import SettlementRecorder

ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidRequest: status.HTTP_400_BAD_REQUEST,
    Conflict: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc: ReservationError):
    for kind, code in ERROR_STATUS.items():
        if isinstance(exc, kind):
            return Response({'error': str(exc)}, status=code)
    return Response({'error': str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def welcome(request):
    return JsonResponse({"message": "Welcome to the Hotel Reservation System"})

def health_check(request):
    return JsonResponse({"status": "ok"})


class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Room.objects.all()
    serializer_class = RoomSerializer
    lookup_value_regex = r'\d+'
    catalog = RoomCatalog()

    def get_engine(self):
        return BookingEngine(catalog=self.catalog)

    def list(self, request):
        """Available rooms, or a search by type and stay dates"""
        params = request.query_params
        if not any(params.get(key) for key in ('room_type', 'check_in', 'check_out')):
            rooms = self.catalog.list_available()
        else:
            room_type = params.get('room_type')
            if not room_type:
                return Response({'error': 'room_type is required when searching by dates'},
                                status=status.HTTP_400_BAD_REQUEST)
            check_in = parse_iso_date(params.get('check_in'))
            check_out = parse_iso_date(params.get('check_out'))
            for parsed in (check_in, check_out):
                if not parsed.ok:
                    return Response({'error': parsed.error}, status=status.HTTP_400_BAD_REQUEST)
            if check_out.value <= check_in.value:
                return Response({'error': 'check_out must be after check_in'},
                                status=status.HTTP_400_BAD_REQUEST)
            rooms = self.catalog.search(room_type, check_in.value, check_out.value)

        serializer = self.get_serializer(rooms, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def by_number(self, request):
        """Find an available room by its number"""
        number = request.query_params.get('number')
        if not number:
            return Response({'error': 'number parameter is required'},
                            status=status.HTTP_400_BAD_REQUEST)
        room = self.catalog.find_by_label(number)
        if room is None:
            return Response({'error': 'Room not found or not available'},
                            status=status.HTTP_404_NOT_FOUND)
        return Response(self.get_serializer(room).data)

    @action(detail=True, methods=['get'])
    def quote(self, request, pk=None):
        stay = StaySerializer(data=request.query_params)
        stay.is_valid(raise_exception=True)
        check_in, check_out = stay.validated_data['check_in'], stay.validated_data['check_out']
        try:
            total = self.get_engine().quote(pk, check_in, check_out)
        except ReservationError as exc:
            return error_response(exc)
        return Response({
            'room_id': int(pk),
            'check_in': check_in,
            'check_out': check_out,
            'nights': (check_out - check_in).days,
            'total_price': f"{total:.2f}",
        })

    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        stay = StaySerializer(data=request.query_params)
        stay.is_valid(raise_exception=True)
        room = self.get_object()
        available = self.get_engine().is_available(
            room.pk, stay.validated_data['check_in'], stay.validated_data['check_out']
        )
        return Response({'room_id': room.pk, 'available': available})


class ReservationViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Reservation.objects.select_related('room')
    serializer_class = ReservationSerializer
    lookup_value_regex = r'\d+'

    def get_engine(self):
        return BookingEngine()

    def get_recorder(self):
        return SettlementRecorder()

    def create(self, request):
        """Book a room for a stay"""
        payload = BookingRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data
        try:
            reservation = self.get_engine().book(
                data['room_id'],
                data['guest_name'],
                data['guest_email'],
                data['check_in'],
                data['check_out'],
            )
        except ReservationError as exc:
            return error_response(exc)
        return Response(self.get_serializer(reservation).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        """Reservation details with the latest payment"""
        try:
            reservation = self.get_engine().get_reservation(pk)
        except ReservationError as exc:
            return error_response(exc)
        payment = self.get_recorder().lookup(reservation.pk)
        serializer = self.get_serializer(reservation, context={'payment': payment})
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        engine = self.get_engine()
        try:
            cancelled = engine.cancel(pk)
            reservation = engine.get_reservation(pk)
        except ReservationError as exc:
            return error_response(exc)
        if not cancelled:
            return Response({'error': 'Reservation is already cancelled'},
                            status=status.HTTP_409_CONFLICT)
        data = self.get_serializer(reservation).data
        if not engine.room_flag_synced:
            data['warning'] = 'Room availability flag could not be updated'
        return Response(data)

    @action(detail=True, methods=['get', 'post'])
    def payment(self, request, pk=None):
        """Record a payment (POST) or show the latest one (GET)"""
        recorder = self.get_recorder()
        if request.method == 'GET':
            payment = recorder.lookup(pk)
            if payment is None:
                return Response({'error': 'No payment found for this reservation'},
                                status=status.HTTP_404_NOT_FOUND)
            return Response(PaymentSerializer(payment).data)

        payload = PaymentRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            payment = recorder.record(pk, payload.validated_data['amount'],
                                      payload.validated_data['method'])
        except ReservationError as exc:
            return error_response(exc)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)
