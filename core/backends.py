from django.contrib.auth.backends import ModelBackend

from .admission import SessionAdmissionPolicy
from .options import get_max_sessions


class LimitLoginSessionsBackend(ModelBackend):
    """
    ModelBackend com limite de sessões concorrentes.

    A senha é validada pelo ModelBackend; em seguida a política de admissão
    despeja a sessão mais antiga se o usuário atingiu o limite.
    """
    policy_class = SessionAdmissionPolicy

    def __init__(self):
        self.policy = self.policy_class()

    def authenticate(self, request, username=None, password=None, **kwargs):
        user = super().authenticate(request, username=username, password=password, **kwargs)
        if user is None:
            return None
        return self.on_authenticate(user.get_username(), user)

    def on_authenticate(self, username, user=None):
        """
        Chamado depois da validação de credenciais e antes da criação da
        sessão. O usuário já validado segue adiante; sem ele o username é
        resolvido e None (falha genérica) indica que não existe.
        """
        return self.policy.admit(username, get_max_sessions(), user=user)
