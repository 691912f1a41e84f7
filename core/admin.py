from django.contrib import admin, messages
from django.utils import timezone
from datetime import datetime

from .audit_logger import log_sessions_cleared
from .models import LoginSessionsOptions, UserSessionTokens
from .session_tokens import SessionTokenStore


@admin.register(LoginSessionsOptions)
class LoginSessionsOptionsAdmin(admin.ModelAdmin):
    list_display = ['max_sessions', 'updated_at']
    readonly_fields = ['updated_at']

    fieldsets = (
        ('Limite de Sessões', {
            'fields': ('max_sessions',)
        }),
        ('Datas', {
            'fields': ('updated_at',),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        # Apenas uma linha de opções
        if LoginSessionsOptions.objects.exists():
            return False
        return super().has_add_permission(request)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UserSessionTokens)
class UserSessionTokensAdmin(admin.ModelAdmin):
    list_display = ['user', 'active_sessions', 'last_activity', 'updated_at']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['user', 'session_tokens', 'updated_at']
    actions = ['clear_sessions']

    def has_add_permission(self, request):
        return False

    @admin.display(description="Sessões ativas")
    def active_sessions(self, obj):
        return len(SessionTokenStore.for_user(obj.user).get_all())

    @admin.display(description="Última atividade")
    def last_activity(self, obj):
        values = [
            s.get('last_activity') for s in (obj.session_tokens or {}).values()
            if isinstance(s, dict) and s.get('last_activity') is not None
        ]
        if not values:
            return '-'
        return datetime.fromtimestamp(max(values), tz=timezone.get_current_timezone())

    @admin.action(description="Encerrar todas as sessões dos usuários selecionados")
    def clear_sessions(self, request, queryset):
        total = 0
        for row in queryset.select_related('user'):
            store = SessionTokenStore.for_user(row.user)
            count = len(store.get_all())
            store.clear_all_sessions()
            log_sessions_cleared(request.user, row.user, count)
            total += count
        self.message_user(request, f"{total} sessão(ões) encerrada(s).", messages.SUCCESS)
