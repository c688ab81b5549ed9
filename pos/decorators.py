from django.contrib.auth.views import redirect_to_login
from django.shortcuts import redirect
from functools import wraps


def role_required(roles):
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return redirect_to_login(request.get_full_path())
            if getattr(request.user, 'role_label', None) in roles:
                return view_func(request, *args, **kwargs)
            return redirect('/admin/')
        return _wrapped_view
    return decorator
