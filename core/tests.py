"""
Testes automatizados para o limitador de sessões de login
"""
import secrets
from io import StringIO
from unittest.mock import Mock, call

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.test import TestCase, Client, RequestFactory, override_settings

from .activity import ActivityTracker, attach_session_information
from .admission import SessionAdmissionPolicy
from .backends import LimitLoginSessionsBackend
from .models import LoginSessionsOptions, UserSessionTokens
from .options import (
    get_max_sessions,
    normalize_max_sessions,
    parse_max_sessions,
    set_max_sessions,
)
from .session_tokens import (
    SESSION_TOKEN_KEY,
    SessionTokenStore,
    get_session_token,
    resolve_user,
)
from .utils import now_timestamp

User = get_user_model()


def recording_store_class(recorder):
    """Store real que registra no `recorder` as escritas feitas pelo núcleo"""

    class RecordingStore(SessionTokenStore):
        def delete_session_by_verifier(self, verifier):
            recorder.delete(verifier)
            return super().delete_session_by_verifier(verifier)

        def clear_all_sessions(self):
            recorder.clear()
            return super().clear_all_sessions()

        def update(self, token, session):
            recorder.update(token)
            return super().update(token, session)

    return RecordingStore


class FailingStore(SessionTokenStore):
    """Store cujas escritas sempre falham"""

    def delete_session_by_verifier(self, verifier):
        raise DatabaseError("banco indisponível")

    def clear_all_sessions(self):
        raise DatabaseError("banco indisponível")

    def update(self, token, session):
        raise DatabaseError("banco indisponível")


def seed_sessions(user, last_activities, expiration=None):
    """Cria uma sessão por last_activity (None = sem o campo) e retorna os tokens"""
    store = SessionTokenStore.for_user(user)
    if expiration is None:
        expiration = now_timestamp() + 3600
    tokens = []
    for index, last_activity in enumerate(last_activities):
        session = {'ip': f'10.0.0.{index}', 'ua': 'test'}
        if last_activity is not None:
            session['last_activity'] = last_activity
        tokens.append(store.create(expiration, session))
    return tokens


def seed_expired_sessions(user, count):
    """Grava sessões já expiradas direto na coleção, como ficam acumuladas no banco"""
    sessions = SessionTokenStore.for_user(user).get_sessions_by_verifier()
    expiration = now_timestamp() - 10
    tokens = []
    for index in range(count):
        token = secrets.token_urlsafe(32)
        sessions[SessionTokenStore.hash_token(token)] = {
            'expiration': expiration,
            'last_activity': index,
            'login': expiration - 60,
        }
        tokens.append(token)
    UserSessionTokens.objects.update_or_create(user=user, defaults={'session_tokens': sessions})
    return tokens


class SessionTokenStoreTest(TestCase):
    """Testes para o armazenamento de sessões"""

    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass123")
        self.store = SessionTokenStore.for_user(self.user)

    def test_create_and_get(self):
        """Token criado é recuperável e o banco guarda só o verifier"""
        expiration = now_timestamp() + 60
        token = self.store.create(expiration, {'last_activity': 10})

        session = self.store.get(token)
        self.assertEqual(session['expiration'], expiration)
        self.assertEqual(session['last_activity'], 10)
        self.assertIn('login', session)

        row = UserSessionTokens.objects.get(user=self.user)
        self.assertNotIn(token, row.session_tokens)
        self.assertIn(SessionTokenStore.hash_token(token), row.session_tokens)

    def test_get_all_skips_expired(self):
        """Sessões expiradas não são contadas"""
        seed_sessions(self.user, [1, 2])
        seed_sessions(self.user, [3], expiration=now_timestamp() - 10)

        self.assertEqual(len(self.store.get_all()), 2)
        self.assertEqual(len(self.store.get_sessions_by_verifier()), 3)

    def test_delete_by_verifier_is_idempotent(self):
        """Remover o mesmo verifier duas vezes retorna sucesso nas duas"""
        tokens = seed_sessions(self.user, [1, 2])
        verifier = SessionTokenStore.hash_token(tokens[0])

        self.assertTrue(self.store.delete_session_by_verifier(verifier))
        self.assertTrue(self.store.delete_session_by_verifier(verifier))
        self.assertIsNone(self.store.get(tokens[0]))
        self.assertIsNotNone(self.store.get(tokens[1]))

    def test_empty_collection_is_not_stored(self):
        """Remover a última sessão apaga a linha do usuário"""
        tokens = seed_sessions(self.user, [1])
        self.store.destroy(tokens[0])

        self.assertFalse(UserSessionTokens.objects.filter(user=self.user).exists())
        self.assertEqual(self.store.get_all(), [])

    def test_verify(self):
        """verify rejeita tokens removidos e expirados"""
        valid = seed_sessions(self.user, [1])[0]
        expired = seed_sessions(self.user, [1], expiration=now_timestamp() - 1)[0]

        self.assertTrue(self.store.verify(valid))
        self.assertFalse(self.store.verify(expired))
        self.store.destroy(valid)
        self.assertFalse(self.store.verify(valid))

    def test_destroy_others(self):
        """destroy_others mantém apenas a sessão informada"""
        tokens = seed_sessions(self.user, [1, 2, 3])

        self.assertEqual(self.store.destroy_others(tokens[1]), 2)
        self.assertEqual(len(self.store.get_all()), 1)
        self.assertIsNotNone(self.store.get(tokens[1]))

    def test_update_reaps_expired_sessions(self):
        """Gravar uma sessão descarta as expiradas da coleção"""
        valid = seed_sessions(self.user, [1])[0]
        seed_expired_sessions(self.user, 10)
        self.assertEqual(len(self.store.get_sessions_by_verifier()), 11)

        self.store.update(valid, self.store.get(valid))

        sessions = self.store.get_sessions_by_verifier()
        self.assertEqual(len(sessions), 1)
        self.assertIn(SessionTokenStore.hash_token(valid), sessions)

    def test_delete_reaps_expired_sessions(self):
        """Remover uma sessão também descarta as expiradas"""
        tokens = seed_sessions(self.user, [3, 4])
        expired = seed_expired_sessions(self.user, 2)

        self.store.destroy(tokens[0])

        self.assertEqual(len(self.store.get_sessions_by_verifier()), 1)
        self.assertIsNone(self.store.get(expired[0]))
        self.assertIsNotNone(self.store.get(tokens[1]))

    def test_destroy_others_does_not_count_expired(self):
        """Sessões expiradas não entram na contagem de destroy_others"""
        tokens = seed_sessions(self.user, [4, 5])
        seed_expired_sessions(self.user, 3)

        self.assertEqual(self.store.destroy_others(tokens[1]), 1)
        self.assertEqual(len(self.store.get_sessions_by_verifier()), 1)

    def test_resolve_user(self):
        self.assertEqual(resolve_user("testuser"), self.user)
        self.assertIsNone(resolve_user("nobody"))
        self.assertIsNone(resolve_user(""))

    def test_get_session_token(self):
        """Token ausente ou malformado é ignorado"""
        token = seed_sessions(self.user, [1])[0]
        request = RequestFactory().get('/')

        self.assertIsNone(get_session_token(request))
        request.session = {}
        self.assertIsNone(get_session_token(request))
        request.session = {SESSION_TOKEN_KEY: 'not a token'}
        self.assertIsNone(get_session_token(request))
        request.session = {SESSION_TOKEN_KEY: 12345}
        self.assertIsNone(get_session_token(request))
        request.session = {SESSION_TOKEN_KEY: token}
        self.assertEqual(get_session_token(request), token)


class SessionAdmissionPolicyTest(TestCase):
    """Testes para a política de admissão"""

    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass123")
        self.recorder = Mock()
        self.store_class = recording_store_class(self.recorder)
        self.policy = SessionAdmissionPolicy(store_class=self.store_class)

    def test_under_limit_admits_without_eviction(self):
        """3 sessões com limite 5: login segue e nada é removido"""
        seed_sessions(self.user, [100, 200, 300])

        self.assertEqual(self.policy.admit("testuser", 5), self.user)
        self.assertEqual(self.recorder.mock_calls, [])
        self.assertEqual(len(SessionTokenStore.for_user(self.user).get_all()), 3)

    def test_at_limit_evicts_oldest(self):
        """5 sessões [100, 200, 50, 400, 300]: a de 50 é removida"""
        tokens = seed_sessions(self.user, [100, 200, 50, 400, 300])
        store = SessionTokenStore.for_user(self.user)
        before = {token: store.get(token) for token in tokens}

        self.assertEqual(self.policy.admit("testuser", 5), self.user)

        self.assertEqual(self.recorder.mock_calls, [call.delete(SessionTokenStore.hash_token(tokens[2]))])
        self.assertIsNone(store.get(tokens[2]))
        for token in tokens[:2] + tokens[3:]:
            self.assertEqual(store.get(token), before[token])

    def test_over_limit_evicts_exactly_one(self):
        """Acima do limite remove apenas uma sessão por login"""
        tokens = seed_sessions(self.user, [30, 10, 20])

        self.policy.admit("testuser", 2)

        self.assertEqual(self.recorder.mock_calls, [call.delete(SessionTokenStore.hash_token(tokens[1]))])
        self.assertEqual(len(SessionTokenStore.for_user(self.user).get_all()), 2)

    def test_sessions_without_last_activity_are_never_evicted(self):
        """Sessões sem last_activity não participam da escolha"""
        tokens = seed_sessions(self.user, [None, 300, None, 200, 400])

        self.policy.admit("testuser", 5)

        self.assertEqual(self.recorder.mock_calls, [call.delete(SessionTokenStore.hash_token(tokens[3]))])

    def test_no_candidate_still_admits(self):
        """Sem nenhuma sessão com last_activity o login segue sem remoção"""
        seed_sessions(self.user, [None, None])

        self.assertEqual(self.policy.admit("testuser", 2), self.user)
        self.assertEqual(self.recorder.mock_calls, [])

    def test_last_session_clears_collection(self):
        """Remover a única sessão limpa a coleção em vez de gravar vazia"""
        seed_sessions(self.user, [100])

        self.policy.admit("testuser", 1)

        self.assertEqual(self.recorder.mock_calls, [call.clear()])
        self.assertFalse(UserSessionTokens.objects.filter(user=self.user).exists())

    def test_tie_picks_first_encountered(self):
        sessions = [
            {'last_activity': 10, 'ip': 'a'},
            {'last_activity': 10, 'ip': 'b'},
            {'last_activity': 20, 'ip': 'c'},
        ]
        self.assertEqual(SessionAdmissionPolicy.get_oldest_session(sessions)['ip'], 'a')
        self.assertIsNone(SessionAdmissionPolicy.get_oldest_session([{'ip': 'x'}]))

    def test_authenticated_user_is_carried_forward(self):
        """Usuário já validado é o mesmo devolvido, sem nova resolução"""
        seed_sessions(self.user, [100, 200])

        self.assertIs(self.policy.admit("testuser", 2, user=self.user), self.user)
        self.assertIs(self.policy.admit("renamed", 5, user=self.user), self.user)
        self.assertEqual(len(SessionTokenStore.for_user(self.user).get_all()), 1)

    def test_unknown_user(self):
        """Username inexistente não decide nada"""
        self.assertIsNone(self.policy.admit("nobody", 5))
        self.assertEqual(self.recorder.mock_calls, [])

    def test_non_positive_limit_uses_default(self):
        """Limite 0 ou ausente vale 5"""
        seed_sessions(self.user, [1, 2, 3, 4])

        self.policy.admit("testuser", 0)
        self.policy.admit("testuser", None)
        self.assertEqual(self.recorder.mock_calls, [])

        seed_sessions(self.user, [5])
        self.policy.admit("testuser", -3)
        self.assertEqual(len(self.recorder.mock_calls), 1)

    def test_snapshot_mismatch_skips_eviction(self):
        """Snapshot que não bate com a coleção não é removido"""

        class DriftingStore(self.store_class):
            def get_all(self):
                return [dict(s, drift=True) for s in super().get_all()]

        seed_sessions(self.user, [1, 2])

        policy = SessionAdmissionPolicy(store_class=DriftingStore)
        self.assertEqual(policy.admit("testuser", 2), self.user)
        self.assertEqual(self.recorder.mock_calls, [])
        self.assertEqual(len(SessionTokenStore.for_user(self.user).get_all()), 2)

    def test_destroy_session_missing_verifier(self):
        """Verifier já ausente conta como destruído"""
        store = self.store_class.for_user(self.user)
        self.assertTrue(SessionAdmissionPolicy.destroy_session('0' * 64, store))
        self.assertEqual(self.recorder.mock_calls, [])

    def test_store_failure_does_not_block_login(self):
        """Erro de banco no despejo é registrado e o login segue"""
        seed_sessions(self.user, [1, 2])

        policy = SessionAdmissionPolicy(store_class=FailingStore)
        with self.assertLogs('security', level='ERROR'):
            self.assertEqual(policy.admit("testuser", 2), self.user)


class ActivityTrackerTest(TestCase):
    """Testes para o rastreamento de atividade"""

    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass123")
        self.recorder = Mock()
        self.tracker = ActivityTracker(store_class=recording_store_class(self.recorder), throttle=300)
        self.now = 1_700_000_000

    def make_request(self, token):
        request = RequestFactory().get('/')
        request.user = self.user
        request.session = {SESSION_TOKEN_KEY: token}
        return request

    def seed(self, last_activity, expiration=None):
        store = SessionTokenStore.for_user(self.user)
        token = store.create(expiration or self.now + 3600, {'last_activity': last_activity})
        return token

    def test_within_throttle_window_no_write(self):
        """Atividade há menos de 5 minutos não grava"""
        token = self.seed(self.now - 299)

        self.assertFalse(self.tracker.touch(self.make_request(token), now=self.now))
        self.assertEqual(self.recorder.mock_calls, [])

    def test_after_throttle_window_writes_once(self):
        """Atividade há 5 minutos ou mais grava uma vez com last_activity = agora"""
        token = self.seed(self.now - 300)

        self.assertTrue(self.tracker.touch(self.make_request(token), now=self.now))
        self.assertEqual(self.recorder.mock_calls, [call.update(token)])
        self.assertEqual(SessionTokenStore.for_user(self.user).get(token)['last_activity'], self.now)

    def test_expired_session_no_write(self):
        """Sessão expirada não é atualizada"""
        token = self.seed(self.now - 1000, expiration=self.now)

        self.assertFalse(self.tracker.touch(self.make_request(token), now=self.now))
        self.assertEqual(self.recorder.mock_calls, [])

    def test_missing_last_activity_is_written(self):
        token = self.seed(None)
        session = SessionTokenStore.for_user(self.user).get(token)
        session.pop('last_activity')
        SessionTokenStore.for_user(self.user).update(token, session)

        self.assertTrue(self.tracker.touch(self.make_request(token), now=self.now))

    def test_anonymous_and_malformed_token_are_noops(self):
        """Sem login ou sem token válido nada acontece"""
        from django.contrib.auth.models import AnonymousUser

        token = self.seed(self.now - 1000)
        request = self.make_request(token)
        request.user = AnonymousUser()
        self.assertFalse(self.tracker.touch(request, now=self.now))

        self.assertFalse(self.tracker.touch(self.make_request('garbage'), now=self.now))
        self.assertFalse(self.tracker.touch(self.make_request('A' * 43), now=self.now))
        self.assertEqual(self.recorder.mock_calls, [])

    def test_write_failure_is_swallowed(self):
        """Falha de escrita não chega ao request"""
        token = self.seed(self.now - 1000)
        tracker = ActivityTracker(store_class=FailingStore, throttle=300)

        with self.assertLogs('core.activity', level='ERROR'):
            self.assertFalse(tracker.touch(self.make_request(token), now=self.now))

    def test_attach_session_information(self):
        self.assertEqual(attach_session_information({}, now=42), {'last_activity': 42})


class MaxSessionsOptionTest(TestCase):
    """Testes para a configuração do máximo de sessões"""

    @override_settings(LOGIN_SESSIONS_MAX=5)
    def test_unset_defaults_to_five(self):
        self.assertEqual(get_max_sessions(), 5)

    @override_settings(LOGIN_SESSIONS_MAX=0)
    def test_non_positive_setting_defaults_to_five(self):
        self.assertEqual(get_max_sessions(), 5)

    @override_settings(LOGIN_SESSIONS_MAX=8)
    def test_saved_option_wins_over_settings(self):
        self.assertEqual(get_max_sessions(), 8)
        set_max_sessions(' 3 ')
        self.assertEqual(get_max_sessions(), 3)
        set_max_sessions(0)
        self.assertEqual(get_max_sessions(), 5)

    @override_settings(LOGIN_SESSIONS_MAX="")
    def test_empty_setting_defaults_to_five(self):
        self.assertEqual(get_max_sessions(), 5)

    @override_settings(LOGIN_SESSIONS_MAX="abc")
    def test_non_numeric_setting_defaults_to_five(self):
        self.assertEqual(get_max_sessions(), 5)

    @override_settings(LOGIN_SESSIONS_MAX=" 7 ")
    def test_setting_from_environment_string(self):
        self.assertEqual(get_max_sessions(), 7)

    @override_settings(LOGIN_SESSIONS_MAX=8)
    def test_non_numeric_option_is_stored_as_zero(self):
        """Texto sem número grava 0, que vale o padrão"""
        set_max_sessions("abc")
        self.assertEqual(LoginSessionsOptions.load().max_sessions, 0)
        self.assertEqual(get_max_sessions(), 5)

    def test_parse_max_sessions(self):
        self.assertEqual(parse_max_sessions(" 12 "), 12)
        self.assertEqual(parse_max_sessions("12abc"), 12)
        self.assertEqual(parse_max_sessions("-3"), -3)
        self.assertEqual(parse_max_sessions(""), 0)
        self.assertEqual(parse_max_sessions("abc"), 0)

    def test_options_are_a_single_row(self):
        set_max_sessions(2)
        set_max_sessions(4)
        self.assertEqual(LoginSessionsOptions.objects.count(), 1)
        self.assertEqual(LoginSessionsOptions.load().max_sessions, 4)

    def test_normalize(self):
        self.assertEqual(normalize_max_sessions("7"), 7)
        self.assertEqual(normalize_max_sessions("abc"), 5)
        self.assertEqual(normalize_max_sessions(None), 5)
        self.assertEqual(normalize_max_sessions(-1), 5)


@override_settings(LOGIN_SESSIONS_MAX=5)
class LoginFlowTest(TestCase):
    """Testes do fluxo completo: backend, signals e middleware"""

    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass123")
        self.store = SessionTokenStore.for_user(self.user)

    def login_client(self):
        client = Client()
        self.assertTrue(client.login(username="testuser", password="testpass123"))
        return client

    def test_login_creates_session_token(self):
        """Login cria a sessão com last_activity"""
        client = self.login_client()
        token = client.session[SESSION_TOKEN_KEY]

        session = self.store.get(token)
        self.assertIsNotNone(session)
        self.assertEqual(session['last_activity'], session['login'])
        self.assertGreater(session['expiration'], now_timestamp())

    def test_wrong_password_creates_nothing(self):
        client = Client()
        self.assertFalse(client.login(username="testuser", password="wrong"))
        self.assertEqual(self.store.get_all(), [])

    def test_backend_unknown_user(self):
        backend = LimitLoginSessionsBackend()
        self.assertIsNone(backend.authenticate(None, username="nobody", password="x"))
        self.assertIsNone(backend.on_authenticate("nobody"))

    def test_backend_passes_authenticated_user(self):
        """on_authenticate devolve o usuário validado pelas credenciais"""
        backend = LimitLoginSessionsBackend()
        self.assertIs(backend.on_authenticate("testuser", self.user), self.user)
        self.assertIs(backend.on_authenticate("renamed", self.user), self.user)

    def test_sixth_login_evicts_least_recently_active(self):
        """O sexto login derruba a sessão menos ativa e só ela"""
        clients = [self.login_client() for _ in range(5)]
        tokens = [client.session[SESSION_TOKEN_KEY] for client in clients]

        for index, token in enumerate(tokens):
            session = self.store.get(token)
            session['last_activity'] = 500 if index == 2 else 1000 + index
            self.store.update(token, session)

        newest = self.login_client()

        self.assertIsNone(self.store.get(tokens[2]))
        self.assertEqual(len(self.store.get_all()), 5)
        self.assertIsNotNone(self.store.get(newest.session[SESSION_TOKEN_KEY]))

        # A sessão despejada perde o login no próximo request
        self.assertEqual(clients[2].get('/api/sessions/').status_code, 403)
        self.assertEqual(clients[0].get('/api/sessions/').status_code, 200)

    def test_request_refreshes_stale_activity(self):
        """Request autenticado atualiza last_activity antigo"""
        client = self.login_client()
        token = client.session[SESSION_TOKEN_KEY]
        session = self.store.get(token)
        session['last_activity'] = now_timestamp() - 600
        self.store.update(token, session)

        client.get('/api/sessions/')

        self.assertGreaterEqual(self.store.get(token)['last_activity'], now_timestamp() - 5)

    def test_logout_destroys_token(self):
        client = self.login_client()
        token = client.session[SESSION_TOKEN_KEY]

        client.logout()

        self.assertIsNone(self.store.get(token))

    def test_api_lists_sessions(self):
        """API lista as sessões e marca a atual"""
        self.login_client()
        client = self.login_client()

        response = client.get('/api/sessions/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data), 2)
        self.assertEqual(sum(1 for item in data if item['current']), 1)

    def test_api_destroy_others(self):
        """destroy-others derruba as outras sessões"""
        other = self.login_client()
        client = self.login_client()

        response = client.post('/api/sessions/destroy-others/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['destroyed'], 1)

        self.assertEqual(other.get('/api/sessions/').status_code, 403)
        self.assertEqual(client.get('/api/sessions/').status_code, 200)

    def test_api_requires_login(self):
        self.assertEqual(Client().get('/api/sessions/').status_code, 403)


class ManagementCommandsTest(TestCase):
    """Testes para os comandos de gerenciamento"""

    def setUp(self):
        self.user = User.objects.create_user(username="testuser", password="testpass123")

    def test_clear_login_sessions_requires_confirm(self):
        seed_sessions(self.user, [1, 2])
        out = StringIO()

        call_command('clear_login_sessions', '--username', 'testuser', stdout=out)

        self.assertIn('--confirm', out.getvalue())
        self.assertEqual(len(SessionTokenStore.for_user(self.user).get_all()), 2)

    def test_clear_login_sessions_for_user(self):
        seed_sessions(self.user, [1, 2])
        out = StringIO()

        call_command('clear_login_sessions', '--username', 'testuser', '--confirm', stdout=out)

        self.assertEqual(SessionTokenStore.for_user(self.user).get_all(), [])
        self.assertIn('2 sessão(ões)', out.getvalue())

    def test_clear_login_sessions_all(self):
        other = User.objects.create_user(username="other", password="testpass123")
        seed_sessions(self.user, [1])
        seed_sessions(other, [1, 2])

        call_command('clear_login_sessions', '--all', '--confirm', stdout=StringIO())

        self.assertFalse(UserSessionTokens.objects.exists())

    def test_clear_login_sessions_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command('clear_login_sessions', '--username', 'nobody', '--confirm', stdout=StringIO())

    @override_settings(LOGIN_SESSIONS_MAX=5)
    def test_login_sessions_max(self):
        out = StringIO()
        call_command('login_sessions_max', '--set', '7', stdout=out)
        self.assertEqual(get_max_sessions(), 7)
        self.assertIn('7', out.getvalue())

        call_command('login_sessions_max', '--set', '0', stdout=StringIO())
        self.assertEqual(get_max_sessions(), 5)

        out = StringIO()
        call_command('login_sessions_max', '--set', 'abc', stdout=out)
        self.assertEqual(LoginSessionsOptions.load().max_sessions, 0)
        self.assertEqual(get_max_sessions(), 5)
        self.assertIn('Opção salva: 0', out.getvalue())

    def test_clear_login_sessions_counts_only_valid(self):
        seed_sessions(self.user, [1, 2])
        seed_expired_sessions(self.user, 3)
        out = StringIO()

        call_command('clear_login_sessions', '--username', 'testuser', '--confirm', stdout=out)

        self.assertIn('2 sessão(ões)', out.getvalue())
