from django.utils.deprecation import MiddlewareMixin

from .context import AuthContext


class AuthContextMiddleware(MiddlewareMixin):
    """
    Attach a read-only ``request.auth_context`` built from the session snapshot.
    Views never read the session keys directly.
    """
    def process_request(self, request):
        session = getattr(request, "session", None)
        if session is None:
            request.auth_context = AuthContext.anonymous()
        else:
            request.auth_context = AuthContext.from_session(session)
