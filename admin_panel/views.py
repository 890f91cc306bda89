import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from authentication.helpers import admin_required_json, first_form_errors, get_auth_context, parse_json_body
from user_settings.monitoring import capture_user_event, track_operation
from utils.errors import ErrorCategory
from utils.supabase_store import StoreError

from .serializers import ConfigValueSerializer, CreateUserSerializer
from .services import UserAdminService

logger = logging.getLogger(__name__)

MODULE = "admin_panel"

DELETE_FAILED = "Silme işlemi başarısız. Yetkiniz olmayabilir."
CONFIG_NOT_FOUND = "Ayar bulunamadı."


def _service() -> UserAdminService:
    return UserAdminService()


def _store_error_response(e: StoreError, message: str = None) -> JsonResponse:
    status = 403 if e.category == ErrorCategory.AUTH else 502
    return JsonResponse({"error": message or f"Hata: {e.message}", "category": e.category.value}, status=status)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@admin_required_json
@track_operation("users", module=MODULE)
def users(request):
    """
    GET: every user, newest first, password included
    POST: create a user with role "user"
    """
    svc = _service()

    if request.method == "GET":
        try:
            items = svc.list_users()
        except StoreError as e:
            logger.error(f"❌ User listing failed: {e}")
            return _store_error_response(e)
        return JsonResponse({"users": [u.to_dict(include_password=True) for u in items]}, status=200)

    data, error_response = parse_json_body(request)
    if error_response:
        return error_response
    form = CreateUserSerializer(data)
    if not form.is_valid():
        return JsonResponse({"errors": first_form_errors(form)}, status=400)

    try:
        profile = svc.create_user(
            username=form.cleaned_data["username"], password=form.cleaned_data["password"],
        )
    except StoreError as e:
        logger.error(f"❌ User creation failed for {form.cleaned_data['username']}: {e}")
        return _store_error_response(e)

    capture_user_event("user_created", {"username": profile.username},
                       {"by": get_auth_context(request).username})
    logger.info(f"✅ User created: {profile.username}")
    return JsonResponse({
        "message": "Kullanıcı başarıyla oluşturuldu.",
        "user": profile.to_dict(include_password=True),
    }, status=201)


@csrf_exempt
@require_http_methods(["DELETE"])
@admin_required_json
@track_operation("delete_user", module=MODULE)
def user_detail(request, user_id):
    try:
        result = _service().delete_user(user_id=user_id)
    except StoreError as e:
        logger.error(f"❌ User deletion failed for {user_id}: {e}")
        return _store_error_response(e, DELETE_FAILED)

    capture_user_event("user_deleted", {"user_id": user_id}, {"by": get_auth_context(request).username})
    return JsonResponse({"success": result.success, "message": result.message}, status=200)


@csrf_exempt
@require_http_methods(["GET", "PUT"])
@admin_required_json
@track_operation("config", module=MODULE)
def config(request, key):
    svc = _service()

    if request.method == "GET":
        try:
            item = svc.get_config(key)
        except StoreError as e:
            return _store_error_response(e)
        if item is None:
            return JsonResponse({"error": CONFIG_NOT_FOUND}, status=404)
        return JsonResponse({"key": item.key, "value": item.value}, status=200)

    data, error_response = parse_json_body(request)
    if error_response:
        return error_response
    form = ConfigValueSerializer(data)
    if not form.is_valid():
        return JsonResponse({"errors": first_form_errors(form)}, status=400)

    try:
        item = svc.set_config(key, form.cleaned_data["value"])
    except StoreError as e:
        logger.error(f"❌ Config update failed for {key}: {e}")
        return _store_error_response(e)
    logger.info(f"⚙️ Config updated: {key}")
    return JsonResponse({"key": item.key, "value": item.value}, status=200)
