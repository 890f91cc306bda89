from django.http import JsonResponse
from django.views.decorators.http import require_POST, require_GET
from django.views.decorators.csrf import csrf_exempt

from .forms import LoginForm
from .context import sign_in, sign_out
from .helpers import parse_json_body, first_form_errors, get_auth_context
from . import services

import logging

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def login(request):
    data, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = LoginForm(data)
    if not form.is_valid():
        return JsonResponse({"errors": first_form_errors(form)}, status=400)

    result = services.login_user(form.cleaned_data['username'], form.cleaned_data['password'])
    if not result.success:
        logger.warning(f"⚠️ Login failed for {form.cleaned_data['username']}: {result.error}")
        return JsonResponse({"success": False, "error": result.error}, status=result.status)

    auth = sign_in(request.session, result.profile)
    logger.info(f"✅ Login successful for {auth.username}")
    return JsonResponse({
        "success": True,
        "message": "Login successful",
        "user": result.profile.to_dict(),
    }, status=200)


@csrf_exempt
@require_POST
def logout(request):
    sign_out(request.session)
    return JsonResponse({'message': 'Logged out'}, status=200)


@require_GET
def me(request):
    auth = get_auth_context(request)
    if not auth.is_authenticated:
        return JsonResponse({"authenticated": False}, status=200)
    return JsonResponse({
        "authenticated": True,
        "user": auth.user.to_dict(),
        "has_api_key_override": bool(auth.api_key_override),
    }, status=200)
