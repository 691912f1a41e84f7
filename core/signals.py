"""
Signals do ciclo de vida das sessões de login
"""
from django.conf import settings
from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver
import logging

from .activity import attach_session_information
from .audit_logger import log_login, log_logout
from .session_tokens import SESSION_TOKEN_KEY, SessionTokenStore, get_session_token
from .utils import get_client_ip, get_user_agent, now_timestamp

logger = logging.getLogger(__name__)


@receiver(user_logged_in)
def create_login_session(sender, request, user, **kwargs):
    """Cria o token da nova sessão e guarda na sessão do Django"""
    if request is None or not hasattr(request, 'session'):
        return

    now = now_timestamp()
    store = SessionTokenStore.for_user(user)
    session = attach_session_information({
        'login': now,
        'ip': get_client_ip(request),
        'ua': get_user_agent(request),
    }, now)
    token = store.create(now + settings.SESSION_COOKIE_AGE, session)
    request.session[SESSION_TOKEN_KEY] = token

    log_login(user, get_client_ip(request), len(store.get_all()))


@receiver(user_logged_out)
def destroy_login_session(sender, request, user, **kwargs):
    """Logout remove o token da sessão atual"""
    if user is None or request is None:
        return

    token = get_session_token(request)
    if token:
        SessionTokenStore.for_user(user).destroy(token)
        logger.debug(f"Sessão de {user} destruída no logout")

    log_logout(user, get_client_ip(request))
