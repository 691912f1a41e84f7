from django.contrib.auth import logout
from django.db import DatabaseError
from django.utils.deprecation import MiddlewareMixin
import logging

from .activity import ActivityTracker
from .audit_logger import log_session_revoked
from .session_tokens import SessionTokenStore, get_session_token
from .utils import get_client_ip

logger = logging.getLogger('security')


class SessionTokenMiddleware(MiddlewareMixin):
    """
    Encerra o login do Django quando o token da sessão deixou de existir
    (despejado pelo limite, removido pelo usuário ou expirado).

    Logins sem token (anteriores à instalação) não são afetados.
    """

    def process_request(self, request):
        if not request.user.is_authenticated:
            return None

        token = get_session_token(request)
        if not token:
            return None

        try:
            valid = SessionTokenStore.for_user(request.user).verify(token)
        except DatabaseError:
            logger.exception("Erro ao verificar token de sessão; request segue")
            return None

        if not valid:
            user = request.user
            logger.info(f"Sessão de {user.get_username()} não é mais válida; encerrando login")
            logout(request)
            log_session_revoked(user, get_client_ip(request), reason='token_invalid')
        return None


class SessionActivityMiddleware(MiddlewareMixin):
    """Atualiza o last_activity da sessão atual (no máximo a cada 5 min)"""

    def __init__(self, get_response):
        super().__init__(get_response)
        self.tracker = ActivityTracker()

    def process_request(self, request):
        self.tracker.touch(request)
        return None
