"""
Armazenamento de tokens de sessão por usuário.

Cada login gera um token aleatório entregue ao cliente (dentro da sessão do
Django). No banco fica apenas o verifier (sha256 do token) como chave da
coleção {verifier: sessão} do usuário, persistida em UserSessionTokens.

Uma sessão é um dicionário simples:
    {'expiration': int, 'last_activity': int, 'login': int, 'ip': str, 'ua': str}

Não há lock nem transação: cada operação lê a coleção, altera e grava de
volta (última escrita vence). Toda escrita parte apenas das sessões ainda
válidas, então as expiradas são descartadas na próxima gravação.
"""
import hashlib
import logging
import re
import secrets

from django.contrib.auth import get_user_model

from .models import UserSessionTokens
from .utils import now_timestamp

logger = logging.getLogger(__name__)

# Chave usada para guardar o token dentro da sessão do Django
SESSION_TOKEN_KEY = '_login_session_token'

# secrets.token_urlsafe(32) gera 43 caracteres url-safe
TOKEN_PATTERN = re.compile(r'^[A-Za-z0-9_-]{43}$')


def resolve_user(username):
    """Resolve o usuário pelo username; None se não existir"""
    if not username:
        return None
    User = get_user_model()
    try:
        return User._default_manager.get_by_natural_key(username)
    except User.DoesNotExist:
        return None


def get_session_token(request):
    """
    Extrai o token de sessão da credencial do request.

    Retorna None quando ausente ou malformado.
    """
    session = getattr(request, 'session', None)
    if session is None:
        return None
    token = session.get(SESSION_TOKEN_KEY)
    if not isinstance(token, str) or not TOKEN_PATTERN.match(token):
        return None
    return token


class SessionTokenStore:
    """
    Coleção de sessões de login de um usuário.

    Usage:
        store = SessionTokenStore.for_user(user)
        token = store.create(expiration, {'last_activity': now})
        store.get(token)
        store.destroy(token)
    """

    def __init__(self, user):
        self.user = user

    @classmethod
    def for_user(cls, user):
        return cls(user)

    @staticmethod
    def hash_token(token):
        """Verifier de um token"""
        return hashlib.sha256(token.encode('utf-8')).hexdigest()

    @staticmethod
    def is_still_valid(session, now=None):
        if now is None:
            now = now_timestamp()
        expiration = session.get('expiration')
        return expiration is not None and expiration >= now

    # ------------------------------------------------------------------
    # Acesso à coleção bruta
    # ------------------------------------------------------------------

    def get_sessions_by_verifier(self):
        """
        Coleção bruta {verifier: sessão}, incluindo sessões expiradas que
        a próxima escrita ainda não removeu.
        """
        row = UserSessionTokens.objects.filter(user=self.user).first()
        if row is None or not isinstance(row.session_tokens, dict):
            return {}
        return {
            verifier: session
            for verifier, session in row.session_tokens.items()
            if isinstance(session, dict)
        }

    def _get_valid_sessions(self):
        """Coleção {verifier: sessão} sem as expiradas; base de toda escrita"""
        now = now_timestamp()
        return {
            verifier: session
            for verifier, session in self.get_sessions_by_verifier().items()
            if self.is_still_valid(session, now)
        }

    def _save_sessions(self, sessions):
        if not sessions:
            self.clear_all_sessions()
            return
        UserSessionTokens.objects.update_or_create(
            user=self.user,
            defaults={'session_tokens': sessions},
        )

    def delete_session_by_verifier(self, verifier):
        """Remove uma sessão pelo verifier; idempotente (já ausente = sucesso)"""
        if verifier not in self.get_sessions_by_verifier():
            return True
        sessions = self._get_valid_sessions()
        sessions.pop(verifier, None)
        self._save_sessions(sessions)
        return True

    def clear_all_sessions(self):
        """Remove a coleção inteira do usuário"""
        UserSessionTokens.objects.filter(user=self.user).delete()

    # ------------------------------------------------------------------
    # Operações por token
    # ------------------------------------------------------------------

    def get_all(self):
        """Sessões ainda válidas do usuário (snapshots, sem verifier)"""
        return list(self._get_valid_sessions().values())

    def get(self, token):
        return self.get_sessions_by_verifier().get(self.hash_token(token))

    def update(self, token, session):
        sessions = self._get_valid_sessions()
        sessions[self.hash_token(token)] = session
        self._save_sessions(sessions)

    def verify(self, token):
        """Token existe e a sessão não expirou"""
        session = self.get(token)
        return session is not None and self.is_still_valid(session)

    def create(self, expiration, session=None):
        """
        Cria uma sessão e retorna o token (o verifier nunca sai do servidor).

        Args:
            expiration: instante de expiração em segundos unix
            session: campos adicionais (ip, ua, last_activity...)
        """
        session = dict(session or {})
        session['expiration'] = int(expiration)
        session.setdefault('login', now_timestamp())

        token = secrets.token_urlsafe(32)
        self.update(token, session)
        logger.debug(f"Sessão criada para {self.user} (expira em {session['expiration']})")
        return token

    def destroy(self, token):
        self.delete_session_by_verifier(self.hash_token(token))

    def destroy_others(self, token_to_keep):
        """Remove todas as sessões exceto a do token informado"""
        verifier = self.hash_token(token_to_keep)
        sessions = self._get_valid_sessions()
        kept = {verifier: sessions[verifier]} if verifier in sessions else {}
        self._save_sessions(kept)
        return len(sessions) - len(kept)

    def destroy_all(self):
        self.clear_all_sessions()
