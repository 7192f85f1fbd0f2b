import logging
from functools import wraps

from django.contrib.auth.views import redirect_to_login
from django.shortcuts import render

from apps.core.users.models import User

logger = logging.getLogger(__name__)

KNOWN_ROLES = frozenset(role for role, _label in User.ROLE_CHOICES)


def _role_set(allowed_roles):
    roles = {allowed_roles} if isinstance(allowed_roles, str) else set(allowed_roles)
    unknown = roles - KNOWN_ROLES
    if unknown:
        raise ValueError(f"Unknown roles: {', '.join(sorted(unknown))}")
    return frozenset(roles)


def role_required(allowed_roles):
    """Let only users with one of `allowed_roles` through; others get the 403 page."""
    roles = _role_set(allowed_roles)

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            user = request.user
            if not user.is_authenticated:
                return redirect_to_login(request.get_full_path())

            if user.role not in roles:
                logger.warning(f"{user.username} ({user.role}) was refused {request.path}")
                return render(request, 'users/forbidden.html', {'allowed_roles': sorted(roles)}, status=403)

            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator
