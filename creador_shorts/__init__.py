"""
Creador de Shorts - ensamblado de videos verticales con FFmpeg y Edge-TTS.
"""

__version__ = "3.0.0"

from .config import Settings
from .domain import Project, Stage
from .pipeline import AssemblyPipeline, PipelineRun

__all__ = ["AssemblyPipeline", "PipelineRun", "Project", "Settings", "Stage"]
