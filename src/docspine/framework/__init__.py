"""Framework layer: the stage interface, the pipeline driver and logging."""

from docspine.framework.pipeline import Stage, StageResult, StageStatus, process

__all__ = ["Stage", "StageResult", "StageStatus", "process"]
