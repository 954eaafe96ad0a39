from fastapi import Request

from app.services.context import EngineContext


def get_engine(request: Request) -> EngineContext:
    """The engine context created in the app lifespan."""
    return request.app.state.engine
