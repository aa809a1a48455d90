from rest_framework.permissions import BasePermission

from .spareparts import visible_sparepart_requests
from .visibility import visible_tickets, visible_work_orders


class TicketVisibility(BasePermission):
    """
    Object access follows the same rules as the ticket list: a ticket outside
    the caller's visible set answers 403, not 404.
    """
    message = "You do not have access to this ticket."

    def has_object_permission(self, request, view, obj):
        return visible_tickets(request.user).filter(pk=obj.pk).exists()


class WorkOrderVisibility(BasePermission):
    message = "You do not have access to this work order."

    def has_object_permission(self, request, view, obj):
        return visible_work_orders(request.user).filter(pk=obj.pk).exists()


class SparepartRequestVisibility(BasePermission):
    message = "You do not have access to this sparepart request."

    def has_object_permission(self, request, view, obj):
        return visible_sparepart_requests(request.user).filter(pk=obj.pk).exists()
