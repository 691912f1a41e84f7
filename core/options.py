"""
Configuração do máximo de sessões concorrentes
"""
import logging
import re

from django.conf import settings
from django.db import DatabaseError

from .models import LoginSessionsOptions

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 5

INTEGER_PREFIX = re.compile(r"[+-]?\d+")


def normalize_max_sessions(value):
    """Converte para inteiro positivo; qualquer outra coisa vira o padrão"""
    if isinstance(value, bool):
        return DEFAULT_MAX_SESSIONS
    try:
        value = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_MAX_SESSIONS
    if value <= 0:
        return DEFAULT_MAX_SESSIONS
    return value


def get_max_sessions():
    """
    Máximo efetivo de sessões por usuário.

    Ordem: opção salva no admin, depois settings.LOGIN_SESSIONS_MAX,
    depois o padrão (5).
    """
    value = getattr(settings, 'LOGIN_SESSIONS_MAX', DEFAULT_MAX_SESSIONS)
    try:
        options = LoginSessionsOptions.load()
    except DatabaseError:
        logger.exception("Erro ao ler opções de sessões de login; usando settings")
        options = None
    if options is not None:
        value = options.max_sessions
    return normalize_max_sessions(value)


def parse_max_sessions(value):
    """
    Inteiro digitado pelo administrador: sinal e dígitos iniciais depois de
    remover espaços. Texto sem número vale 0, que get_max_sessions trata
    como o padrão.
    """
    match = INTEGER_PREFIX.match(str(value).strip())
    return int(match.group()) if match else 0


def set_max_sessions(value):
    """Grava a opção (inteiro, como digitado pelo administrador)"""
    options = LoginSessionsOptions.load() or LoginSessionsOptions()
    options.max_sessions = parse_max_sessions(value)
    options.save()
    return options
