from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LoginSessionsOptions',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('max_sessions', models.IntegerField(default=5, help_text='Define o número máximo de sessões simultâneas que um único usuário pode ter. Valores menores ou iguais a zero usam o padrão (5).', verbose_name='Máximo de sessões concorrentes')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Atualizado em')),
            ],
            options={
                'verbose_name': 'Opções de Sessões de Login',
                'verbose_name_plural': 'Opções de Sessões de Login',
            },
        ),
        migrations.CreateModel(
            name='UserSessionTokens',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_tokens', models.JSONField(default=dict, verbose_name='Sessões')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Atualizado em')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='login_sessions', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Sessões do Usuário',
                'verbose_name_plural': 'Sessões dos Usuários',
            },
        ),
    ]
