"""
Rastreamento de atividade das sessões de login.

O last_activity de uma sessão é gravado na criação e atualizado a cada
request autenticado, no máximo uma vez a cada
settings.LOGIN_SESSIONS_ACTIVITY_THROTTLE segundos (5 minutos).
"""
import logging

from django.conf import settings
from django.db import DatabaseError

from .session_tokens import SessionTokenStore, get_session_token
from .utils import now_timestamp

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE = 5 * 60


def attach_session_information(session, now=None):
    """Carimba last_activity em uma sessão que está sendo criada"""
    session['last_activity'] = now if now is not None else now_timestamp()
    return session


class ActivityTracker:
    """Atualiza o last_activity da sessão atual com limite de frequência"""

    def __init__(self, store_class=SessionTokenStore, throttle=None):
        self.store_class = store_class
        if throttle is None:
            throttle = getattr(settings, 'LOGIN_SESSIONS_ACTIVITY_THROTTLE', DEFAULT_THROTTLE)
        self.throttle = throttle

    def touch(self, request, now=None):
        """
        No máximo uma gravação por request. Nunca levanta exceção para o
        chamador.

        Returns:
            True se o last_activity foi gravado
        """
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            return False

        token = get_session_token(request)
        if not token:
            return False

        store = self.store_class.for_user(user)
        try:
            current_session = store.get(token)
        except DatabaseError:
            logger.exception(f"Erro ao ler sessão de {user}")
            return False
        if not current_session:
            return False

        if now is None:
            now = now_timestamp()

        if not self.should_update(current_session, now):
            return False

        current_session['last_activity'] = now
        try:
            store.update(token, current_session)
        except DatabaseError:
            logger.exception(f"Erro ao atualizar last_activity de {user}")
            return False
        return True

    def should_update(self, session, now):
        """Sessão ainda válida e última gravação há pelo menos `throttle` segundos"""
        expiration = session.get('expiration')
        # só atualiza se a sessão não expirou
        if expiration is None or expiration <= now:
            return False
        last_activity = session.get('last_activity')
        if last_activity is None:
            return True
        # só atualiza a cada 5 min para reduzir carga no banco
        return now - last_activity >= self.throttle
