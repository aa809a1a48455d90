from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from . import diagnosis, notifications, services, spareparts, work_orders, zoom
from .constants import Scope
from .exceptions import NotFound
from .models import Notification, SparepartRequest, Ticket, WorkOrder, ZoomAccount
from .permissions import SparepartRequestVisibility, TicketVisibility, WorkOrderVisibility
from .serializers import (
    AssignSerializer,
    NotificationSerializer,
    RejectSerializer,
    SparepartRejectSerializer,
    SparepartRequestSerializer,
    StatusUpdateSerializer,
    TicketCreateSerializer,
    TicketDiagnosisSerializer,
    TicketSerializer,
    TicketUpdateSerializer,
    TimelineSerializer,
    WorkOrderCreateSerializer,
    WorkOrderPayloadSerializer,
    WorkOrderSerializer,
    WorkOrderStatusSerializer,
    ZoomAccountSerializer,
    ZoomApproveSerializer,
    ZoomSlotSerializer,
)
from .visibility import (
    filter_by_status,
    technician_stats,
    ticket_counts,
    visible_tickets,
    visible_work_orders,
    zoom_booking_stats,
)


def _validated(serializer_class, data, **kwargs):
    serializer = serializer_class(data=data, **kwargs)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


class TicketViewSet(viewsets.ModelViewSet):
    serializer_class = TicketSerializer
    permission_classes = [IsAuthenticated, TicketVisibility]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        qs = Ticket.objects.select_related('requester', 'assignee', 'zoom_account').prefetch_related('attachments')
        if self.action not in ('list', 'counts'):
            # detail routes: existence first, then TicketVisibility decides 403
            return qs
        params = self.request.query_params
        scope = params.get('scope')
        if scope not in Scope.values:
            scope = None
        qs = visible_tickets(self.request.user, scope=scope, qs=qs)
        for name in ('type', 'severity'):
            value = params.get(name)
            if value and value != 'all':
                qs = qs.filter(**{name: value})
        qs = filter_by_status(qs, params.get('status'))
        assigned_to = params.get('assigned_to')
        if assigned_to and assigned_to.isdigit():
            qs = qs.filter(assignee_id=int(assigned_to))
        search = (params.get('search') or '').strip()
        if search:
            qs = qs.filter(
                Q(ticket_number__icontains=search) | Q(title__icontains=search) | Q(description__icontains=search)
            )
        return qs.order_by('-created_at', '-id')

    def _respond(self, ticket, code=status.HTTP_200_OK):
        ticket = self.get_queryset().get(pk=ticket.pk)
        return Response(TicketSerializer(ticket, context=self.get_serializer_context()).data, status=code)

    # create via the service: ticket number, allocator and events
    def create(self, request, *args, **kwargs):
        data = dict(_validated(TicketCreateSerializer, request.data))
        files = data.pop('attachments', [])
        ticket = services.create_ticket(request.user, data, files=files)
        out = self.get_serializer(ticket)
        headers = self.get_success_headers(out.data)
        return Response(out.data, status=status.HTTP_201_CREATED, headers=headers)

    def partial_update(self, request, *args, **kwargs):
        ticket = self.get_object()
        data = _validated(TicketUpdateSerializer, request.data)
        return self._respond(services.update_ticket(ticket, request.user, data))

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        services.delete_ticket(self.get_object(), request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def counts(self, request):
        scope = request.query_params.get('scope')
        return Response(ticket_counts(request.user, scope=scope if scope in Scope.values else None))

    @action(detail=False, methods=['get'], url_path='technician-stats')
    def technicians(self, request):
        return Response(technician_stats(request.user))

    @action(detail=False, methods=['get'], url_path='stats/zoom-bookings')
    def zoom_stats(self, request):
        return Response(zoom_booking_stats(request.user))

    @action(detail=True, methods=['patch'])
    def assign(self, request, pk=None):
        ticket = self.get_object()
        data = _validated(AssignSerializer, request.data)
        ticket = services.assign_ticket(ticket, request.user, data['assigned_to'], notes=data['notes'])
        return self._respond(ticket)

    @action(detail=True, methods=['patch'], url_path='status')
    def change_status(self, request, pk=None):
        ticket = self.get_object()
        data = _validated(StatusUpdateSerializer, request.data)
        ticket = services.update_status(
            ticket, request.user, data['status'],
            notes=data['notes'],
            mark_work_orders_ready=data['mark_work_orders_ready'],
            completion_data=data.get('completion_data'),
            estimated_schedule=data.get('estimated_schedule'),
        )
        return self._respond(ticket)

    @action(detail=True, methods=['patch'])
    def approve(self, request, pk=None):
        ticket = self.get_object()
        if ticket.is_zoom:
            return self.approve_zoom(request, pk)
        return self._respond(services.approve_ticket(ticket, request.user))

    @action(detail=True, methods=['patch'])
    def reject(self, request, pk=None):
        ticket = self.get_object()
        if ticket.is_zoom:
            return self.reject_zoom(request, pk)
        data = _validated(RejectSerializer, request.data)
        return self._respond(services.reject_ticket(ticket, request.user, data['reason']))

    @action(detail=True, methods=['patch'], url_path='approve-zoom')
    def approve_zoom(self, request, pk=None):
        ticket = self.get_object()
        data = _validated(ZoomApproveSerializer, request.data)
        ticket = services.approve_zoom(
            ticket, request.user,
            zoom_account_id=data.get('zoom_account_id'),
            meeting_link=data['meeting_link'],
            meeting_id=data['meeting_id'],
            passcode=data['passcode'],
        )
        return self._respond(ticket)

    @action(detail=True, methods=['patch'], url_path='reject-zoom')
    def reject_zoom(self, request, pk=None):
        ticket = self.get_object()
        data = _validated(RejectSerializer, request.data)
        return self._respond(services.reject_zoom(ticket, request.user, data['reason']))

    @action(detail=True, methods=['get', 'post', 'delete'], url_path='diagnosis')
    def diagnosis_detail(self, request, pk=None):
        ticket = self.get_object()
        if request.method == 'GET':
            return Response(TicketDiagnosisSerializer(diagnosis.get_diagnosis(ticket)).data)
        if request.method == 'DELETE':
            diagnosis.delete_diagnosis(ticket, request.user)
            return Response(status=status.HTTP_204_NO_CONTENT)

        data = _validated(TicketDiagnosisSerializer, request.data)
        obj, created = diagnosis.submit_diagnosis(ticket, request.user, data)
        return Response(
            TicketDiagnosisSerializer(obj).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=True, methods=['get'], url_path='work-orders')
    def ticket_work_orders(self, request, pk=None):
        ticket = self.get_object()
        qs = ticket.work_orders.select_related('created_by', 'ticket').order_by('-created_at', '-id')
        return Response(WorkOrderSerializer(qs, many=True).data)

    @action(detail=True, methods=['get'])
    def timeline(self, request, pk=None):
        ticket = self.get_object()
        qs = ticket.timeline.select_related('actor')
        return Response(TimelineSerializer(qs, many=True).data)


class WorkOrderViewSet(viewsets.ModelViewSet):
    serializer_class = WorkOrderSerializer
    permission_classes = [IsAuthenticated, WorkOrderVisibility]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        qs = WorkOrder.objects.select_related('ticket', 'created_by')
        if self.action != 'list':
            return qs
        qs = visible_work_orders(self.request.user, qs=qs)
        params = self.request.query_params
        for name in ('status', 'type'):
            value = params.get(name)
            if value and value != 'all':
                qs = qs.filter(**{name: value})
        if params.get('ticket_id'):
            qs = qs.filter(ticket_id=params['ticket_id'])
        search = (params.get('search') or '').strip()
        if search:
            qs = qs.filter(
                Q(ticket__ticket_number__icontains=search)
                | Q(ticket__title__icontains=search)
                | Q(vendor_name__icontains=search)
                | Q(license_name__icontains=search)
            )
        return qs.order_by('-created_at', '-id')

    def create(self, request, *args, **kwargs):
        data = dict(_validated(WorkOrderCreateSerializer, request.data))
        try:
            ticket = Ticket.objects.get(pk=data.pop('ticket_id'))
        except Ticket.DoesNotExist:
            raise NotFound("Ticket not found.")
        work_order = work_orders.create_work_order(request.user, ticket, data.pop('type'), data)
        return Response(self.get_serializer(work_order).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        work_order = self.get_object()
        data = _validated(WorkOrderPayloadSerializer, request.data)
        work_order = work_orders.update_work_order(work_order, request.user, data)
        return Response(self.get_serializer(work_order).data)

    def update(self, request, *args, **kwargs):
        return self.partial_update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        work_orders.delete_work_order(self.get_object(), request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['patch'], url_path='status')
    def change_status(self, request, pk=None):
        work_order = self.get_object()
        data = _validated(WorkOrderStatusSerializer, request.data)
        work_order = work_orders.update_work_order_status(
            work_order, request.user, data['status'],
            completion_notes=data['completion_notes'],
            failure_reason=data['failure_reason'],
            vendor_name=data.get('vendor_name'),
            vendor_contact=data.get('vendor_contact'),
        )
        return Response(self.get_serializer(work_order).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(work_orders.work_order_stats(request.user))


class SparepartRequestViewSet(mixins.CreateModelMixin,
                              mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              viewsets.GenericViewSet):
    serializer_class = SparepartRequestSerializer
    permission_classes = [IsAuthenticated, SparepartRequestVisibility]

    def get_queryset(self):
        qs = SparepartRequest.objects.select_related('work_order__ticket', 'requested_by', 'approved_by')
        if self.action != 'list':
            return qs
        qs = spareparts.visible_sparepart_requests(self.request.user, qs=qs)
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('work_order_id'):
            qs = qs.filter(work_order_id=params['work_order_id'])
        return qs.order_by('-created_at', '-id')

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        work_order = data.pop('work_order')
        serializer.instance = spareparts.create_sparepart_request(self.request.user, work_order, data)

    @action(detail=True, methods=['patch'])
    def approve(self, request, pk=None):
        obj = spareparts.approve_sparepart_request(self.get_object(), request.user)
        return Response(self.get_serializer(obj).data)

    @action(detail=True, methods=['patch'])
    def reject(self, request, pk=None):
        target = self.get_object()
        data = _validated(SparepartRejectSerializer, request.data)
        obj = spareparts.reject_sparepart_request(target, request.user, data['rejection_reason'])
        return Response(self.get_serializer(obj).data)

    @action(detail=True, methods=['patch'])
    def fulfill(self, request, pk=None):
        obj = spareparts.fulfill_sparepart_request(self.get_object(), request.user)
        return Response(self.get_serializer(obj).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        return Response(spareparts.sparepart_stats(request.user))


class ZoomAccountViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ZoomAccountSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return ZoomAccount.objects.filter(is_active=True).order_by('priority', 'id')

    @action(detail=True, methods=['get'])
    def conflicts(self, request, pk=None):
        account = self.get_object()
        slot = _validated(ZoomSlotSerializer, request.query_params)
        conflicts = zoom.get_conflicts(
            account.id, slot['date'], slot['start_time'], slot['end_time'],
            exclude_ticket_id=slot.get('exclude_ticket_id'),
        )
        return Response({'account_id': account.id, 'has_conflict': bool(conflicts), 'conflicts': conflicts})

    @action(detail=False, methods=['post'], url_path='check-availability')
    def check_availability(self, request):
        slot = _validated(ZoomSlotSerializer, request.data)
        return Response(zoom.check_availability(slot['date'], slot['start_time'], slot['end_time']))


class NotificationViewSet(mixins.ListModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """The caller's own inbox; other users' notifications are 404."""
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = Notification.objects.filter(user=self.request.user).select_related('ticket')
        if self.action == 'list' and self.request.query_params.get('unread') in ('1', 'true'):
            qs = qs.filter(is_read=False)
        return qs

    @action(detail=True, methods=['patch'])
    def read(self, request, pk=None):
        return Response(self.get_serializer(notifications.mark_read(self.get_object())).data)

    @action(detail=False, methods=['patch'], url_path='read-all')
    def read_all(self, request):
        return Response({'updated': notifications.mark_all_read(request.user)})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'unread_count': notifications.unread_count(request.user)})
