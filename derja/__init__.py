from __future__ import annotations

from .assistant import DerjaAssistant
from .config import PipelineConfig
from .errors import DerjaError, GenerationError, InvalidRequest

__all__ = [
    "DerjaAssistant",
    "DerjaError",
    "GenerationError",
    "InvalidRequest",
    "PipelineConfig",
]
