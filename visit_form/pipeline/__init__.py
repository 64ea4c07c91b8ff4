"""Pipeline for visit submission processing."""

from visit_form.pipeline.models import ProcessingResult, ProcessingStatus
from visit_form.pipeline.orchestrator import Pipeline, PipelineConfig

__all__ = [
    "Pipeline",
    "PipelineConfig",
    "ProcessingResult",
    "ProcessingStatus",
]
