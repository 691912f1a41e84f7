from django.contrib import admin
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from core.api import LoginSessionViewSet

router = DefaultRouter()
router.register(r'sessions', LoginSessionViewSet, basename='login-session')

urlpatterns = [
    path("admin/", admin.site.urls),
    # Sessões de login do usuário autenticado
    path("api/", include(router.urls)),
]
