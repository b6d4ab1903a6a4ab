"""
ASGI config for the emergency hub project.

Wires both HTTP (Django) and WebSocket (Channels).
Order matters: configure Django before importing any Django-dependent modules.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "emergency_hub.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from hub.realtime.consumers import AlertsConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

# Development servers connect to /ws, deployed front-ends to the
# same-origin /api/ws.
websocket_urlpatterns = [
    path("ws", AlertsConsumer.as_asgi()),
    path("api/ws", AlertsConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
