from django.urls import path
from . import views

app_name = 'admin_panel'

urlpatterns = [
    path('users/', views.users, name='users'),
    path('users/<str:user_id>/', views.user_detail, name='user_detail'),
    path('config/<str:key>/', views.config, name='config'),
]
