from django.db import models
from django.conf import settings


class UserSessionTokens(models.Model):
    """
    Coleção de sessões de login de um usuário.

    `session_tokens` guarda um objeto JSON {verifier: sessão}, onde o
    verifier é o sha256 do token entregue ao cliente. Uma coleção vazia nunca
    é gravada: a linha inteira é removida.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='login_sessions',
        verbose_name="Usuário"
    )
    session_tokens = models.JSONField(default=dict, verbose_name="Sessões")
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Atualizado em")

    class Meta:
        verbose_name = "Sessões do Usuário"
        verbose_name_plural = "Sessões dos Usuários"

    def __str__(self):
        return f"{self.user} ({len(self.session_tokens or {})} sessões)"


class LoginSessionsOptions(models.Model):
    """Opções do limitador de sessões (linha única, pk=1)"""
    max_sessions = models.IntegerField(
        default=5,
        verbose_name="Máximo de sessões concorrentes",
        help_text="Define o número máximo de sessões simultâneas que um único usuário pode ter. "
                  "Valores menores ou iguais a zero usam o padrão (5)."
    )
    updated_at = models.DateTimeField(auto_now=True, verbose_name="Atualizado em")

    class Meta:
        verbose_name = "Opções de Sessões de Login"
        verbose_name_plural = "Opções de Sessões de Login"

    def save(self, *args, **kwargs):
        # Sempre a mesma linha
        self.pk = 1
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Máximo de sessões: {self.max_sessions}"

    @classmethod
    def load(cls):
        """Retorna a linha de opções ou None se ainda não foi salva"""
        return cls.objects.filter(pk=1).first()
