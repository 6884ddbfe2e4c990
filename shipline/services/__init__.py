"""Pipeline stages.

Services implement the release stages on top of the domain layer (core/)
and the process runner (platform/).
"""

from shipline.services.errors import PipelineError, SmokeFailure
from shipline.services.pipeline import Pipeline, PipelineRun, PipelineSummary, prepare_run

__all__ = [
    "Pipeline",
    "PipelineError",
    "PipelineRun",
    "PipelineSummary",
    "SmokeFailure",
    "prepare_run",
]
