"""
Sistema de Logs de Auditoria para sessões de login
"""
import logging
import json
from django.utils import timezone

# Logger de auditoria; handlers configurados em settings.LOGGING
audit_logger = logging.getLogger('audit')


class AuditLogger:
    """Classe para gerenciar logs de auditoria"""

    @staticmethod
    def log_user_action(user, action, details=None, ip_address=None):
        """
        Log de ações do usuário

        Args:
            user: Usuário que executou a ação
            action: Tipo de ação (login, logout, session_evicted, etc.)
            details: Detalhes adicionais da ação
            ip_address: IP do usuário
        """
        log_data = {
            'user_id': user.pk if user else None,
            'username': user.get_username() if user else 'anonymous',
            'action': action,
            'timestamp': timezone.now().isoformat(),
            'ip_address': ip_address,
            'details': details or {}
        }

        audit_logger.info(json.dumps(log_data, ensure_ascii=False))

    @staticmethod
    def log_security_event(event_type, details=None, ip_address=None):
        """
        Log de eventos de segurança

        Args:
            event_type: Tipo de evento (session_revoked, etc.)
            details: Detalhes do evento
            ip_address: IP relacionado
        """
        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
            'ip_address': ip_address,
            'details': details or {}
        }

        audit_logger.warning(json.dumps(log_data, ensure_ascii=False))


# Funções de conveniência
def log_login(user, ip_address=None, session_count=None):
    """Log de login bem-sucedido"""
    AuditLogger.log_user_action(
        user,
        'login_success',
        {'active_sessions': session_count},
        ip_address
    )


def log_logout(user, ip_address=None):
    """Log de logout"""
    AuditLogger.log_user_action(user, 'logout', None, ip_address)


def log_session_evicted(user, session, max_sessions):
    """Log de sessão mais antiga removida para liberar vaga"""
    AuditLogger.log_user_action(
        user,
        'session_evicted',
        {
            'max_sessions': max_sessions,
            'last_activity': session.get('last_activity'),
            'login': session.get('login'),
            'ip': session.get('ip'),
        }
    )


def log_session_revoked(user, ip_address=None, reason=''):
    """Log de login encerrado porque o token não é mais válido"""
    AuditLogger.log_security_event(
        'session_revoked',
        {'username': user.get_username() if user else None, 'reason': reason},
        ip_address
    )


def log_sessions_cleared(actor, target, count):
    """Log de limpeza manual de sessões (admin, API ou comando)"""
    AuditLogger.log_user_action(
        actor,
        'sessions_cleared',
        {
            'target_user_id': target.pk if target else None,
            'target_username': target.get_username() if target else None,
            'count': count,
        }
    )
