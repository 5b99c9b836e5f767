"""Client for hosted chunking pipelines."""

from .base import CloudClient, CloudError, PipelineNotFoundError
from .pipeline import Pipeline

__all__ = ["CloudClient", "CloudError", "Pipeline", "PipelineNotFoundError"]
