from django.urls import path
from . import views

app_name = 'user_settings'

urlpatterns = [
    path('profile/', views.user_profile, name='user_profile'),
    path('api-key/', views.api_key, name='api_key'),
    path('api-key/test/', views.test_api_key, name='test_api_key'),
]
