# Configuração do Gunicorn para produção VPS
import multiprocessing
import os

# Configuração do WSGI
wsgi_app = "limitador_sessoes.wsgi:application"

# Cada request roda em um worker síncrono próprio; o limitador de sessões não
# usa locks, então não há estado compartilhado entre workers além do banco
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
timeout = 60
keepalive = 5

# Configuração de logs
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = "info"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Configuração de segurança
bind = os.getenv("GUNICORN_BIND", "127.0.0.1:8000")
backlog = 2048
max_requests = 1000
max_requests_jitter = 50
preload_app = True


def on_starting(server):
    """Callback quando o servidor inicia"""
    server.log.info("Servidor Gunicorn iniciando...")


def post_fork(server, worker):
    """Callback após criar um novo worker"""
    server.log.info(f"Worker {worker.pid} criado")


def on_exit(server):
    """Callback quando o servidor encerra"""
    server.log.info("Servidor Gunicorn encerrando...")
