import json
from functools import wraps

from django.http import JsonResponse

from authentication.context import AuthContext

INVALID_PAYLOAD_MSG = "invalid payload"
AUTHENTICATION_REQUIRED = "Oturum açmanız gerekiyor"
ADMIN_REQUIRED = "Bu işlem için yönetici yetkisi gerekiyor"


def parse_json_body(request):
    raw = request.body or b''
    if not raw.strip():
        return {}, None
    try:
        text = raw.decode('utf-8')
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None, JsonResponse({"error": INVALID_PAYLOAD_MSG}, status=400)
    if not isinstance(data, dict):
        return None, JsonResponse({"error": INVALID_PAYLOAD_MSG}, status=400)
    return data, None


def get_auth_context(request) -> AuthContext:
    ctx = getattr(request, "auth_context", None)
    return ctx if isinstance(ctx, AuthContext) else AuthContext.anonymous()


def first_form_errors(form) -> dict:
    errors = {}
    for field, error_list in form.errors.items():
        errors[field] = error_list[0] if isinstance(error_list, list) else str(error_list)
    return errors


def login_required_json(view_func):
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not get_auth_context(request).is_authenticated:
            return JsonResponse({"error": AUTHENTICATION_REQUIRED}, status=401)
        return view_func(request, *args, **kwargs)
    return _wrapped


def admin_required_json(view_func):
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        auth = get_auth_context(request)
        if not auth.is_authenticated:
            return JsonResponse({"error": AUTHENTICATION_REQUIRED}, status=401)
        if not auth.is_admin:
            return JsonResponse({"error": ADMIN_REQUIRED}, status=403)
        return view_func(request, *args, **kwargs)
    return _wrapped
