"""Per-dataset pipeline and concurrent batch runner."""

from .runner import BatchResult, SATTPipelineRunner, write_outputs

__all__ = ["BatchResult", "SATTPipelineRunner", "write_outputs"]
