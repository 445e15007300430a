import os

from celery import Celery
from kombu import Queue

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

app = Celery('social')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# workers: celery -A backend worker -Q default,follows,mail
app.conf.task_default_queue = 'default'
app.conf.task_queues = (
    Queue('default'),
    Queue('follows'),
    Queue('mail'),
)
app.conf.task_routes = {
    'follows.tasks.follow_pipeline': {'queue': 'follows'},
    'accounts.tasks.send_confirmation_email': {'queue': 'mail'},
}
app.conf.timezone = os.environ.get('DJANGO_TIME_ZONE', 'UTC')
