"""
API dependencies
"""
from fastapi import Request

from app.services.rate_pipeline import RatePipeline


def get_rate_pipeline(request: Request) -> RatePipeline:
    """Process-wide pipeline built in the app lifespan."""
    return request.app.state.rate_pipeline
