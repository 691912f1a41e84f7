from django.core.management.base import BaseCommand

from core.options import get_max_sessions, set_max_sessions


class Command(BaseCommand):
    help = 'Exibe ou altera o máximo de sessões concorrentes por usuário'

    def add_arguments(self, parser):
        parser.add_argument(
            '--set',
            dest='value',
            help='Novo máximo de sessões (valores <= 0 ou não numéricos usam o padrão)',
        )

    def handle(self, *args, **options):
        value = options.get('value')
        if value is not None:
            saved = set_max_sessions(value)
            self.stdout.write(self.style.SUCCESS(f'Opção salva: {saved.max_sessions}'))

        self.stdout.write(f'Máximo efetivo de sessões: {get_max_sessions()}')
