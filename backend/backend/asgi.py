"""
ASGI config for backend project.

It exposes the ASGI callable as a module-level variable named ``application``.
HTTP goes to Django; websockets are authenticated from a ``token`` query
parameter and routed to the notification consumer.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")

django_asgi_app = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from notifications.routing import websocket_urlpatterns  # noqa: E402
from notifications.token_middleware import QueryStringTokenAuthMiddleware  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AuthMiddlewareStack(
            QueryStringTokenAuthMiddleware(
                URLRouter(websocket_urlpatterns)
            )
        ),
    }
)
