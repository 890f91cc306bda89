from django.urls import path
from . import views

app_name = "chat"

urlpatterns = [
    # Sessions
    path("sessions/", views.sessions, name="sessions"),
    path("sessions/<str:sid>/", views.session_detail, name="session_detail"),
    path("sessions/<str:sid>/ask/", views.ask, name="ask"),
    path("sessions/<str:sid>/export/", views.export, name="export"),

    # Library
    path("library/courses/", views.courses, name="courses"),
    path("library/courses/<str:course_id>/", views.course_detail, name="course_detail"),
    path("library/laws/", views.laws, name="laws"),
    path("library/laws/explain/", views.explain_law, name="explain_law"),
]
