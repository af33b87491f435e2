"""Request-scoped access to the shared call services"""

from fastapi import Request
from app.services.container import CallServices


def get_services(request: Request) -> CallServices:
    return request.app.state.services
