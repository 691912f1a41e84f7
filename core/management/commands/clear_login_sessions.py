"""
Comando Django para encerrar sessões de login de um usuário ou de todos.
"""
from django.core.management.base import BaseCommand, CommandError

from core.audit_logger import log_sessions_cleared
from core.models import UserSessionTokens
from core.session_tokens import SessionTokenStore, resolve_user


class Command(BaseCommand):
    help = 'Encerra as sessões de login de um usuário (ou de todos os usuários)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--username',
            help='Usuário cujas sessões serão encerradas',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Encerra as sessões de todos os usuários',
        )
        parser.add_argument(
            '--confirm',
            action='store_true',
            help='Confirma a limpeza das sessões',
        )

    def handle(self, *args, **options):
        username = options.get('username')
        if not username and not options['all']:
            raise CommandError('Informe --username USUARIO ou --all')

        if not options['confirm']:
            self.stdout.write(
                self.style.WARNING(
                    'Para encerrar as sessões, use: python manage.py clear_login_sessions '
                    f"{'--all' if options['all'] else '--username ' + username} --confirm"
                )
            )
            return

        if options['all']:
            total = 0
            for row in UserSessionTokens.objects.select_related('user'):
                store = SessionTokenStore.for_user(row.user)
                count = len(store.get_all())
                store.clear_all_sessions()
                log_sessions_cleared(None, row.user, count)
                total += count
            self.stdout.write(
                self.style.SUCCESS(f'✓ {total} sessão(ões) encerrada(s).')
            )
            return

        user = resolve_user(username)
        if user is None:
            raise CommandError(f'Usuário "{username}" não encontrado')

        store = SessionTokenStore.for_user(user)
        count = len(store.get_all())
        store.clear_all_sessions()
        log_sessions_cleared(None, user, count)
        self.stdout.write(
            self.style.SUCCESS(f'✓ {count} sessão(ões) de {username} encerrada(s).')
        )
