from fastapi import Request

from ...components.sessions.cleanup import SessionCleanupService


def get_cleanup_service(request: Request) -> SessionCleanupService:
    """The cleanup service built by the application lifespan."""
    return request.app.state.cleanup_service
