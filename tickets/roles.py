"""
Role lookup for service-desk users.

Roles are stored as Django auth groups named after the role tag; an object may
instead carry a ``roles`` attribute (list or JSON-encoded list), which is what
the identity provider hands over for non-persisted actors.
"""
import json
import logging

from .constants import Role

logger = logging.getLogger(__name__)

STAFF_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN_LAYANAN})


def _parse(raw):
    if raw is None:
        return frozenset()
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("Unparsable role field %r", raw)
            return frozenset()
    if isinstance(raw, str):
        return frozenset({raw})
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(str(r) for r in raw if isinstance(r, str) and r)


def get_user_roles(user) -> frozenset:
    if user is None or not getattr(user, 'is_authenticated', False):
        return frozenset()
    if hasattr(user, 'roles'):
        return _parse(user.roles)
    elif getattr(user, 'pk', None) is not None:
        return frozenset(user.groups.values_list('name', flat=True))
    return frozenset()


def has_role(user, role) -> bool:
    return role in get_user_roles(user)


def has_any_role(user, roles) -> bool:
    return not get_user_roles(user).isdisjoint(roles)


def has_all_roles(user, roles) -> bool:
    return get_user_roles(user).issuperset(roles)


def is_staffish(user) -> bool:
    return has_any_role(user, STAFF_ROLES)


def users_with_role(role):
    from django.contrib.auth import get_user_model
    return get_user_model().objects.filter(groups__name=role, is_active=True).distinct()
