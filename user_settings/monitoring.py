"""
Sentry monitoring utilities for the settings, chat and admin endpoints.
Provides decorators and helpers for tracking performance and errors.
"""

import functools
import time
from typing import Callable, Dict, Optional
import logging

import sentry_sdk
from django.http import HttpResponse

from authentication.helpers import get_auth_context

logger = logging.getLogger(__name__)

# Performance thresholds (in seconds)
SLOW_OPERATION_THRESHOLD = 2.0  # Log warning if operation takes longer
CRITICAL_OPERATION_THRESHOLD = 5.0  # Log critical if operation takes too long


class SentryMonitor:
    """Sentry context, tags and breadcrumbs for one operation."""

    MODULE = "user_settings"
    COMPONENT_VIEW = "view"
    COMPONENT_SERVICE = "service"

    @staticmethod
    def set_operation_context(operation: str, username: str, module: str = MODULE,
                              additional_data: Optional[Dict] = None):
        """Set context for the current operation."""
        context = {"operation": operation, "username": username, "module": module,
                   "timestamp": time.time(), **(additional_data or {})}
        sentry_sdk.set_context("operation_context", context)
        for key, value in {"module": module, "operation": operation, "username": username}.items():
            sentry_sdk.set_tag(key, value)

    @staticmethod
    def add_breadcrumb(message: str, category: str = "user_settings", level: str = "info", data: Optional[Dict] = None):
        sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})

    @staticmethod
    def _get_log_level_for_execution_time(execution_time: float) -> str:
        if execution_time > CRITICAL_OPERATION_THRESHOLD:
            return "error"
        elif execution_time > SLOW_OPERATION_THRESHOLD:
            return "warning"
        else:
            return "info"

    @staticmethod
    def track_operation_result(operation: str, username: str, success: bool, execution_time: float,
                               status_code: int = 200, error_message: Optional[str] = None):
        """Track the result of an operation in Sentry and the local log."""
        sentry_sdk.set_tag("operation_success", str(success))
        sentry_sdk.set_tag("http_status", status_code)
        context = {"operation": operation, "username": username, "success": success,
                   "execution_time": execution_time, "status_code": status_code, "timestamp": time.time()}
        if error_message:
            context["error_message"] = error_message
        sentry_sdk.set_context("operation_result", context)

        if not success:
            logger.error(f"❌ {operation} failed for {username}: {error_message or f'HTTP {status_code}'}")
            return
        level = SentryMonitor._get_log_level_for_execution_time(execution_time)
        if level == "error":
            logger.error(f"🚨 CRITICAL: {operation} took {execution_time:.3f}s for {username}")
        elif level == "warning":
            logger.warning(f"⚠️ SLOW: {operation} took {execution_time:.3f}s for {username}")
        else:
            logger.info(f"✅ {operation} completed in {execution_time:.3f}s for {username}")


def _status_code(result) -> int:
    return result.status_code if isinstance(result, HttpResponse) else 200


def track_operation(operation_name: str, module: str = SentryMonitor.MODULE):
    """
    Decorator wrapping a view in a Sentry transaction.

    Usage:
        @track_operation("update_profile")
        def user_profile(request):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(request, *args, **kwargs):
            username = get_auth_context(request).username
            SentryMonitor.set_operation_context(operation_name, username, module)
            SentryMonitor.add_breadcrumb(
                f"Starting {operation_name}",
                category=f"{module}.{SentryMonitor.COMPONENT_VIEW}",
                data={"function": func.__name__, "username": username},
            )

            with sentry_sdk.start_transaction(op=module, name=f"{module}.{operation_name}") as transaction:
                transaction.set_tag("operation", operation_name)
                transaction.set_tag("username", username)
                start_time = time.time()
                try:
                    result = func(request, *args, **kwargs)
                except Exception as e:
                    execution_time = time.time() - start_time
                    sentry_sdk.capture_exception(e)
                    transaction.set_status("internal_error")
                    SentryMonitor.track_operation_result(
                        operation_name, username, False, execution_time,
                        status_code=500, error_message=f"{type(e).__name__}: {e}",
                    )
                    raise

                execution_time = time.time() - start_time
                status_code = _status_code(result)
                is_success = 200 <= status_code < 300
                transaction.set_status("ok" if is_success else "error")
                SentryMonitor.track_operation_result(
                    operation_name, username, is_success, execution_time, status_code=status_code,
                )
                return result
        return wrapper
    return decorator


def track_service_operation(operation_name: str):
    """
    Decorator creating a child span for a service-layer call.
    A result with ``success=False`` is reported as an error span.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            SentryMonitor.add_breadcrumb(
                f"Starting service operation: {operation_name}",
                category=f"service.{SentryMonitor.COMPONENT_SERVICE}",
                data={"function": func.__name__},
            )
            with sentry_sdk.start_span(op=f"service.{operation_name}") as span:
                span.set_tag("operation", operation_name)
                start_time = time.time()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    span.set_data("execution_time", time.time() - start_time)
                    span.set_data("error_type", type(e).__name__)
                    logger.error(f"❌ Service operation '{operation_name}' failed [error={type(e).__name__}: {e}]")
                    raise

                execution_time = time.time() - start_time
                is_success = getattr(result, "success", True)
                span.set_data("execution_time", execution_time)
                span.set_data("status", "success" if is_success else "error")
                logger.debug(
                    f"{'✅' if is_success else '⚠️'} Service operation '{operation_name}' completed in {execution_time:.3f}s"
                )
                return result
        return wrapper
    return decorator


def capture_user_event(event_name: str, user_data: dict, extra_data: dict = None):
    """Record a custom user event (profile_updated, user_deleted, ...) in Sentry."""
    sentry_sdk.set_context("user_event", {
        "event": event_name,
        "timestamp": time.time(),
        **user_data,
        **(extra_data or {})
    })
    sentry_sdk.add_breadcrumb(
        category="user_event",
        message=event_name,
        level="info",
        data={**user_data, **(extra_data or {})},
    )
    logger.info(f"📊 Captured user event: {event_name} for user {user_data.get('username', 'unknown')}")
