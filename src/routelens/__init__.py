"""routelens: LLM code review for Express endpoint handlers

Discovers route bindings, extracts each handler's source, and asks a model
for a structured review.
"""

__version__ = "0.1.0"

from routelens.adapter import Insight, InsightError, clean_response
from routelens.config import (
    Config,
    ModelConfig,
    PipelineConfig,
    get_model_config,
    get_pipeline_config,
    load_config,
)
from routelens.llm_client import ModelClient, ModelResult
from routelens.models import AnalysisPayload, Endpoint, ExtractedFunction
from routelens.pipeline import Pipeline, RunReport

__all__ = [
    # Configuration
    "Config",
    "load_config",
    "ModelConfig",
    "PipelineConfig",
    "get_model_config",
    "get_pipeline_config",
    # Records
    "Endpoint",
    "ExtractedFunction",
    "AnalysisPayload",
    # Model
    "ModelClient",
    "ModelResult",
    "Insight",
    "InsightError",
    "clean_response",
    # Orchestration
    "Pipeline",
    "RunReport",
]
