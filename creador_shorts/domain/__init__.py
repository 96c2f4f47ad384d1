"""Modelos y errores del dominio."""

from .errors import (
    AssemblyError,
    NoInputMedia,
    PipelineCancelled,
    ProbeFailure,
    TranscodeFailure,
    TtsFailure,
    ZeroDurationClips,
)
from .models import (
    Aspect,
    CaptionEntry,
    PreparedSegment,
    ProcessResult,
    ProgressEvent,
    Project,
    Stage,
    StageOutput,
)

__all__ = [
    "AssemblyError",
    "NoInputMedia",
    "PipelineCancelled",
    "ProbeFailure",
    "TranscodeFailure",
    "TtsFailure",
    "ZeroDurationClips",
    "Aspect",
    "CaptionEntry",
    "PreparedSegment",
    "ProcessResult",
    "ProgressEvent",
    "Project",
    "Stage",
    "StageOutput",
]
