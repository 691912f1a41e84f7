"""
API REST para as sessões de login do usuário autenticado
"""
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .audit_logger import log_sessions_cleared
from .serializers import LoginSessionSerializer
from .session_tokens import SessionTokenStore, get_session_token
from .utils import now_timestamp


class LoginSessionViewSet(viewsets.ViewSet):
    """API para listar e encerrar sessões de login"""
    permission_classes = [IsAuthenticated]

    def list(self, request):
        """Sessões válidas do usuário, mais recentes primeiro"""
        store = SessionTokenStore.for_user(request.user)
        token = get_session_token(request)
        current_verifier = store.hash_token(token) if token else None
        now = now_timestamp()

        sessions = [
            dict(session, current=(verifier == current_verifier))
            for verifier, session in store.get_sessions_by_verifier().items()
            if store.is_still_valid(session, now)
        ]
        sessions.sort(key=lambda s: s.get('last_activity') or 0, reverse=True)

        serializer = LoginSessionSerializer(sessions, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=['post'], url_path='destroy-others')
    def destroy_others(self, request):
        """Encerra todas as sessões do usuário exceto a atual"""
        token = get_session_token(request)
        store = SessionTokenStore.for_user(request.user)
        if token:
            destroyed = store.destroy_others(token)
        else:
            destroyed = len(store.get_all())
            store.destroy_all()

        log_sessions_cleared(request.user, request.user, destroyed)
        return Response({'destroyed': destroyed})
