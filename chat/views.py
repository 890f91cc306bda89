# chat/views.py
import json
import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from authentication.helpers import AUTHENTICATION_REQUIRED, get_auth_context
from utils.supabase_store import StoreError

from . import library
from . import service as chat_service
from .sessions import SessionReconciler

log = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Sohbet bulunamadı."
LOAD_FAILED = "Sohbetler yüklenemedi: {error}"


def _payload(request) -> dict:
    """
    JSON body via DRF, or form / query fallbacks.
    List values (QueryDict) are flattened to their first element.
    """
    def _flatten(d) -> dict:
        out = {}
        for k, v in (d or {}).items():
            out[k] = v[0] if isinstance(v, list) and v else v
        return out

    data = getattr(request, "data", None)
    if data:
        if hasattr(data, "dict"):
            return data.dict()
        if isinstance(data, dict):
            return _flatten(data)

    try:
        raw = request.body.decode() if request.body else ""
        if raw:
            parsed = json.loads(raw)
            if isinstance(parsed, dict):
                return _flatten(parsed)
    except (ValueError, UnicodeDecodeError):
        pass

    if request.GET:
        return request.GET.dict()
    return {}


def _require_user(request):
    auth = get_auth_context(request)
    if not auth.is_authenticated:
        return auth, Response({"error": AUTHENTICATION_REQUIRED}, status=401)
    return auth, None


def _reconciler() -> SessionReconciler:
    return SessionReconciler()


def _store_error(e: StoreError) -> Response:
    return Response({"error": LOAD_FAILED.format(error=e.message), "category": e.category.value}, status=502)


@api_view(["GET", "POST"])
@permission_classes([AllowAny])
def sessions(request):
    """GET: flush dirty sessions, then list (sidebar)
       POST: start a new draft with the welcome message
    """
    auth, err = _require_user(request)
    if err:
        return err

    if request.method == "GET":
        try:
            items = _reconciler().list(auth.user_id)
        except StoreError as e:
            log.warning("session_list_failed user=%s err=%s", auth.username, e)
            return _store_error(e)
        data = [
            {
                "id": s.id,
                "status": s.status,
                "title": s.title,
                "last_updated": s.to_dict()["last_updated"],
                "dirty": s.dirty,
            }
            for s in items
        ]
        return Response({"sessions": data}, status=200)

    svc = chat_service.ChatTurnService(reconciler=_reconciler(), generator=chat_service.ResponseGenerator())
    session = svc.start_session(auth, auth.user)
    alerts = [chat_service.PERSIST_ALERT.format(error=session.last_error)] if session.dirty else []
    return Response({"session": session.to_dict(), "alerts": alerts}, status=201)


@api_view(["GET", "DELETE"])
@permission_classes([AllowAny])
def session_detail(request, sid):
    auth, err = _require_user(request)
    if err:
        return err
    reconciler = _reconciler()

    try:
        if request.method == "DELETE":
            reconciler.delete(sid, auth.user_id)
            return Response({"ok": True}, status=200)
        session = reconciler.load(sid, auth.user_id)
    except StoreError as e:
        log.warning("session_detail_failed sid=%s method=%s err=%s", sid, request.method, e)
        return _store_error(e)

    if session is None:
        return Response({"error": SESSION_NOT_FOUND}, status=404)
    return Response({"session": session.to_dict()}, status=200)


@api_view(["POST"])
@permission_classes([AllowAny])
def ask(request, sid):
    """
    Run one turn: append the user message, persist, generate, append, persist.

    - Reads the text from: text, q, content
    - 400 + {"error": "empty question"} if blank
    - 404 if the session is unknown for this user
    - 200 + {"answer", "session", "alerts"}; generation failures come back as
      a diagnostic answer, persistence failures as alerts
    """
    auth, err = _require_user(request)
    if err:
        return err

    data = _payload(request)
    q = str(data.get("text") or data.get("q") or data.get("content") or "").strip()
    if not q:
        return Response({"error": "empty question"}, status=400)

    reconciler = _reconciler()
    try:
        session = reconciler.load(sid, auth.user_id)
    except StoreError as e:
        return _store_error(e)
    if session is None:
        return Response({"error": SESSION_NOT_FOUND}, status=404)

    svc = chat_service.ChatTurnService(reconciler=reconciler, generator=chat_service.ResponseGenerator())
    result = svc.send(auth, session, q, auth.user)

    return Response(
        {"answer": result.reply, "session": result.session.to_dict(), "alerts": result.alerts},
        status=200,
    )


@api_view(["GET"])
@permission_classes([AllowAny])
def export(request, sid):
    auth, err = _require_user(request)
    if err:
        return err
    try:
        session = _reconciler().load(sid, auth.user_id)
    except StoreError as e:
        return _store_error(e)
    if session is None:
        return Response({"error": SESSION_NOT_FOUND}, status=404)

    resp = Response(chat_service.export_session(session, auth.user), status=200)
    resp["Content-Disposition"] = f'attachment; filename="dto_sohbet_{session.id}.json"'
    return resp


# ===== Library =====

@api_view(["GET"])
@permission_classes([AllowAny])
def courses(request):
    return Response({"courses": [c.to_dict() for c in library.COURSES]}, status=200)


@api_view(["GET"])
@permission_classes([AllowAny])
def course_detail(request, course_id):
    auth, err = _require_user(request)
    if err:
        return err
    course = library.get_course(course_id)
    if course is None:
        return Response({"error": "Kurs bulunamadı."}, status=404)
    content = library.course_content(course, api_key_override=auth.api_key_override)
    return Response({"course": course.to_dict(), "content": content}, status=200)


@api_view(["GET"])
@permission_classes([AllowAny])
def laws(request):
    return Response({"laws": library.LAWS}, status=200)


@api_view(["POST"])
@permission_classes([AllowAny])
def explain_law(request):
    auth, err = _require_user(request)
    if err:
        return err
    law = str(_payload(request).get("law") or "").strip()
    if not law:
        return Response({"error": "empty law"}, status=400)
    content = library.explain_law(law, api_key_override=auth.api_key_override)
    return Response({"law": law, "content": content}, status=200)
