"""Shared FastAPI dependencies."""

from fastapi import Request

from stepquest.pipeline.context import PipelineContext


def get_pipeline(request: Request) -> PipelineContext:
    """The pipeline context built by the application lifespan."""
    return request.app.state.pipeline
