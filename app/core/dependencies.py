"""Request dependencies for objects owned by the application (set up in ``lifespan``)."""

from fastapi import Request

from app.collectors.llm_base import BaseLlmAdapter
from app.schemas.analysis import AnalysisSettings
from app.services.analyzer import AnalysisOrchestrator


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return request.app.state.orchestrator


def get_adapter(request: Request) -> BaseLlmAdapter:
    return request.app.state.orchestrator.adapter


def get_analysis_defaults(request: Request) -> AnalysisSettings:
    return request.app.state.analysis_defaults
