from bqstream.pipeline.coordinator import PipelineConfig, PipelineResult, run_pipeline
from bqstream.pipeline.inserter import Inserter, InserterConfig

__all__ = [
    "Inserter",
    "InserterConfig",
    "PipelineConfig",
    "PipelineResult",
    "run_pipeline",
]
