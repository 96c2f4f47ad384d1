"""
Modelos de Dominio
Definen la estructura de datos que recorre el pipeline de ensamblado.
"""
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class Aspect(str, Enum):
    """Relación de aspecto del video de salida."""
    VERTICAL = "9:16"
    HORIZONTAL = "16:9"
    SQUARE = "1:1"

    def resolution(self, short_side: int = 1080) -> Tuple[int, int]:
        """Resolución (ancho, alto) con el lado corto dado."""
        w, h = (int(x) for x in self.value.split(":"))
        if w <= h:
            return short_side, short_side * h // w
        return short_side * w // h, short_side


class Stage(BaseModel):
    """
    Una etapa de un video multi-parte.
    Tiene su propia narración y su propia fuente visual.
    """
    goal: str = Field("", description="Intención narrativa de la etapa")
    visual_search: str = Field("", description="Término de búsqueda de stock footage")
    local_clip_path: Optional[str] = None

    @property
    def has_local_clip(self) -> bool:
        return bool(self.local_clip_path)


class Project(BaseModel):
    """Todo lo necesario para construir el video final."""
    topic: str = ""
    script: str = ""
    clip_paths: List[str] = Field(default_factory=list)
    audio_path: Optional[str] = None
    caption_path: Optional[str] = None
    output_path: str
    narration_duration: float = 0.0
    stage_texts: List[str] = Field(default_factory=list)
    stages: List[Stage] = Field(default_factory=list)

    @property
    def is_staged(self) -> bool:
        return len(self.stages) > 0

    def stage_text(self, index: int) -> str:
        if index < len(self.stage_texts):
            return self.stage_texts[index] or ""
        return ""


class CaptionEntry(BaseModel):
    """Un subtítulo con tiempo de inicio/fin."""
    index: int
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_srt(self) -> str:
        return (
            f"{self.index}\n"
            f"{format_srt_time(self.start)} --> {format_srt_time(self.end)}\n"
            f"{self.text}\n\n"
        )


class PreparedSegment(BaseModel):
    """Clip normalizado: duración fija, resolución fija y sin audio."""
    path: str
    duration: float
    width: int
    height: int


class ProcessResult(BaseModel):
    """Resultado de una invocación externa."""
    exit_code: int
    tail: List[str] = Field(default_factory=list)


class StageOutput(BaseModel):
    """Salida de sintetizar una etapa."""
    segment: PreparedSegment
    audio_path: Optional[str] = None
    duration: float


class ProgressEvent(BaseModel):
    """Avance de un paso del pipeline (0-100, se reinicia en cada paso)."""
    step: str
    percent: float = Field(0.0, ge=0.0, le=100.0)


def format_srt_time(seconds: float) -> str:
    """Formatea segundos a formato SRT (HH:MM:SS,mmm)."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"
