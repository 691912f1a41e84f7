"""
Utilitários para o sistema
"""
from django.utils import timezone


def now_timestamp():
    """Horário atual em segundos unix (inteiro), base de todos os carimbos de sessão"""
    return int(timezone.now().timestamp())


def get_client_ip(request):
    """Obter IP real do cliente"""
    if request is None:
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def get_user_agent(request):
    """User agent do cliente, truncado para não inflar a coleção de sessões"""
    if request is None:
        return ''
    return (request.META.get('HTTP_USER_AGENT') or '')[:255]
