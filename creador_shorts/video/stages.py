"""
Síntesis por etapas.
Cada etapa recibe su narración y un clip ajustado exactamente a su duración.
También arma la lista inflada del modo clásico (una sola narración).
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import Settings
from ..domain.errors import NoInputMedia, ProbeFailure, ZeroDurationClips
from ..domain.models import Aspect, Stage, StageOutput
from ..infrastructure.ffmpeg import MediaProber, write_concat_list
from ..run_context import RunContext
from .clip_preparer import ClipPreparer

logger = logging.getLogger(__name__)


def resolve_stage_clip(stage: Stage, index: int, clip_paths: Sequence[str]) -> Optional[str]:
    """
    Clip de una etapa: el local si lo tiene, si no el resuelto externamente
    para esa posición, y en último caso el primero disponible.
    """
    if stage.has_local_clip:
        return stage.local_clip_path
    if index < len(clip_paths):
        return clip_paths[index]
    return clip_paths[0] if clip_paths else None


class StageSynthesizer:
    """Produce narración + segmento de video sincronizado para cada etapa."""

    def __init__(
        self,
        settings: Settings,
        prober: MediaProber,
        preparer: ClipPreparer,
        narrator,
    ):
        """
        Args:
            settings: Configuración de la ejecución.
            prober: Sondeo de duraciones.
            preparer: Preparador de clips.
            narrator: Sintetizador con synthesize(text, output_path) -> Path.
        """
        self.settings = settings
        self.prober = prober
        self.preparer = preparer
        self.narrator = narrator

    def synthesize(
        self,
        stage: Stage,
        stage_text: str,
        *,
        ctx: RunContext,
        index: int,
        clip_path: Optional[str],
    ) -> StageOutput:
        """
        Genera la narración de la etapa y su segmento de video.

        Sin texto la etapa es muda y dura silent_stage_seconds.
        """
        if not clip_path:
            raise NoInputMedia(f"La etapa {index + 1} no tiene clip")

        duration = self.settings.silent_stage_seconds
        audio_path: Optional[Path] = None

        if stage_text and stage_text.strip():
            audio_path = self.narrator.synthesize(stage_text, ctx.artifact(f"stage_{index}_audio.mp3"))
            try:
                duration = self.prober.duration(audio_path)
            except ProbeFailure as e:
                logger.warning(f"{e}; la etapa {index + 1} usará {duration:.1f}s")
        else:
            logger.info(f"Etapa {index + 1} sin narración: {duration:.1f}s de silencio")

        segment = self.preparer.prepare(
            clip_path,
            duration,
            Aspect.VERTICAL,
            ctx=ctx,
            tag=f"stage_{index}",
            fallback_duration=self.settings.clip_probe_fallback_seconds,
        )
        return StageOutput(
            segment=segment,
            audio_path=str(audio_path) if audio_path else None,
            duration=duration,
        )

    def legacy_target_duration(self, narration_duration: float) -> float:
        """Duración objetivo del modo clásico (silent_video_seconds si es mudo)."""
        if narration_duration and narration_duration > 0:
            return narration_duration
        return self.settings.silent_video_seconds

    def build_legacy(
        self,
        clip_paths: Sequence[str],
        narration_duration: float,
        *,
        ctx: RunContext,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> Tuple[Path, float]:
        """
        Escala todos los clips y arma una lista que los repite en ronda
        hasta superar la duración objetivo más un margen.

        Returns:
            (ruta de la lista concat, duración objetivo)
        """
        if not clip_paths:
            raise NoInputMedia("No hay clips de video disponibles")

        target = self.legacy_target_duration(narration_duration)

        scaled: List[Path] = []
        for i, clip in enumerate(clip_paths):
            ctx.raise_if_cancelled()
            scaled.append(self.preparer.normalize(clip, Aspect.VERTICAL, ctx.artifact(f"scaled_{i}.mp4")))
            if on_progress:
                on_progress((i + 1) / len(clip_paths) * 100)

        durations: List[float] = []
        for path in scaled:
            try:
                durations.append(self.prober.duration(path))
            except ProbeFailure as e:
                logger.warning(str(e))
                durations.append(0.0)

        if all(d <= 0 for d in durations):
            raise ZeroDurationClips("Todos los clips tienen duración 0 o no se pudieron leer")

        entries: List[Path] = []
        current = 0.0
        index = 0
        picks = 0
        while current < target + self.settings.legacy_buffer_seconds:
            if picks >= self.settings.legacy_max_picks:
                break
            if durations[index] > 0:
                entries.append(scaled[index])
                current += durations[index]
            index = (index + 1) % len(scaled)
            picks += 1

        list_path = write_concat_list(entries, ctx.artifact("basic_list.txt"))
        logger.info(
            f"Lista concat: {len(entries)} clips en ronda, ~{current:.1f}s (objetivo {target:.1f}s)"
        )
        return list_path, target
