import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from authentication.context import clear_api_key_override, refresh_snapshot, set_api_key_override
from authentication.helpers import first_form_errors, get_auth_context, login_required_json, parse_json_body
from chat.llm import probe_connection

from .monitoring import SentryMonitor, capture_user_event, track_operation
from .serializers import ApiKeySerializer, ProfileSerializer
from .services import ProfileService

logger = logging.getLogger(__name__)

_profile_service = ProfileService()

# Constants for monitoring categories
CATEGORY_VIEW = "user_settings.view"
CATEGORY_VALIDATION = "user_settings.validation"


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@login_required_json
@track_operation("user_profile")
def user_profile(request):
    """
    GET: the stored profile (the session snapshot if the store is unreachable)
    PUT: validate and save profile fields

    The session snapshot takes the edit whether or not the remote write
    succeeds; a failed write is not reverted and comes back as an alert.
    """
    auth = get_auth_context(request)

    if request.method == "GET":
        profile = _profile_service.load_profile(profile=auth.user)
        refresh_snapshot(request.session, profile)
        return JsonResponse({"user": profile.to_dict()}, status=200)

    data, error_response = parse_json_body(request)
    if error_response:
        logger.warning(f"⚠️ Invalid JSON payload for profile update by user: {auth.username}")
        return error_response

    form = ProfileSerializer(data)
    if not form.is_valid():
        SentryMonitor.add_breadcrumb(
            "Profile validation failed",
            category=CATEGORY_VALIDATION,
            level="warning",
            data={"errors": first_form_errors(form)},
        )
        return JsonResponse({"errors": first_form_errors(form)}, status=400)

    result = _profile_service.update_profile(profile=auth.user, changes=form.cleaned_data)
    refresh_snapshot(request.session, result.profile)

    if result.success:
        capture_user_event("profile_updated", {"username": auth.username})
        logger.info(f"✅ Profile updated for user: {auth.username}")
    alerts = [result.alert] if result.alert else []
    return JsonResponse({
        "success": result.success,
        "user": result.profile.to_dict(),
        "alerts": alerts,
    }, status=200)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@login_required_json
@track_operation("api_key")
def api_key(request):
    """
    POST: keep a personal Gemini key for this login
    DELETE: forget it and go back to the shared key
    """
    auth = get_auth_context(request)

    if request.method == "DELETE":
        clear_api_key_override(request.session)
        logger.info(f"🔑 API key override cleared for user: {auth.username}")
        return JsonResponse({"success": True, "has_api_key_override": False}, status=200)

    data, error_response = parse_json_body(request)
    if error_response:
        return error_response

    form = ApiKeySerializer(data)
    if not form.is_valid():
        return JsonResponse({"errors": first_form_errors(form)}, status=400)

    set_api_key_override(request.session, form.cleaned_data["api_key"])
    logger.info(f"🔑 API key override set for user: {auth.username}")
    return JsonResponse({"success": True, "has_api_key_override": True}, status=200)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@login_required_json
@track_operation("api_key_test")
def test_api_key(request):
    """
    One short generation against the primary model, with the key from the
    payload if given, else the key this login would use.
    """
    auth = get_auth_context(request)
    data, error_response = parse_json_body(request)
    if error_response:
        return error_response

    candidate = str(data.get("api_key") or "").strip() or auth.api_key_override
    result = probe_connection(candidate)
    return JsonResponse(result, status=200)
