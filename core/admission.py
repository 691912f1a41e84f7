"""
Política de admissão de sessões: aplicada no login, depois da validação de
senha e antes de a nova sessão ser criada.

Se o usuário já tem `max_sessions` sessões válidas, a sessão com o
last_activity mais antigo é destruída para abrir espaço. O login nunca é
recusado por excesso de sessões.
"""
import logging

from django.db import DatabaseError

from .audit_logger import log_session_evicted
from .options import normalize_max_sessions
from .session_tokens import SessionTokenStore, resolve_user

logger = logging.getLogger('security')


class SessionAdmissionPolicy:
    """
    Decide a admissão de um novo login.

    Não guarda estado entre chamadas; `store_class` permite trocar o
    armazenamento de sessões.
    """

    def __init__(self, store_class=SessionTokenStore):
        self.store_class = store_class

    def admit(self, username, max_sessions, user=None):
        """
        Admite o login de `username`, despejando a sessão mais antiga se o
        limite foi atingido.

        Se `user` já foi resolvido pela validação de credenciais ele é
        usado e devolvido; caso contrário o username é resolvido aqui.

        Returns:
            O usuário resolvido, ou None se o username não existe (o
            chamador devolve a falha genérica de autenticação).
        """
        if user is None:
            user = resolve_user(username)
        if user is None:
            return None

        max_sessions = normalize_max_sessions(max_sessions)
        store = self.store_class.for_user(user)
        sessions = store.get_all()

        if len(sessions) < max_sessions:
            return user

        oldest_session = self.get_oldest_session(sessions)
        if not oldest_session:
            logger.warning(
                f"Limite de {max_sessions} sessões atingido por {username}, "
                f"mas nenhuma sessão tem last_activity"
            )
            return user

        try:
            verifier = self.get_verifier_by_session(oldest_session, store)
            if verifier is None:
                logger.warning(f"Sessão mais antiga de {username} não encontrada na coleção; despejo ignorado")
                return user
            self.destroy_session(verifier, store)
        except DatabaseError:
            logger.exception(f"Erro ao despejar sessão de {username}")
            return user

        logger.info(f"Sessão mais antiga de {username} removida (limite {max_sessions})")
        log_session_evicted(user, oldest_session, max_sessions)
        return user

    @staticmethod
    def get_oldest_session(sessions):
        """
        Sessão com o menor last_activity.

        Sessões sem last_activity não participam; em empate vence a primeira
        encontrada.
        """
        oldest = None
        for session in sessions:
            if session.get('last_activity') is None:
                continue
            if oldest is None or session['last_activity'] < oldest['last_activity']:
                oldest = session
        return oldest

    @staticmethod
    def get_verifier_by_session(session, store):
        """
        Encontra o verifier de um snapshot de sessão.

        get_all() devolve cópias sem a chave; a sessão é localizada na
        coleção bruta pela igualdade exata de todos os campos.
        """
        for verifier, stored in store.get_sessions_by_verifier().items():
            if stored == session:
                return verifier
        return None

    @staticmethod
    def destroy_session(verifier, store):
        """
        Remove a sessão do verifier. Se era a última, limpa a coleção inteira.

        Verifier já ausente conta como sucesso.
        """
        sessions = store.get_sessions_by_verifier()
        if verifier not in sessions:
            return True
        if len(sessions) > 1:
            return store.delete_session_by_verifier(verifier)
        store.clear_all_sessions()
        return True
