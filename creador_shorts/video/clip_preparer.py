"""
Preparación de clips.
Normaliza un clip (resolución, aspecto, fps, sin audio) y lo ajusta a una
duración exacta recortando o repitiéndolo.
"""

import logging
import math
from pathlib import Path
from typing import Optional, Union

from ..config import Settings
from ..domain.errors import ProbeFailure
from ..domain.models import Aspect, PreparedSegment
from ..infrastructure.ffmpeg import FFmpegCommand, FilterChain, MediaProber, write_concat_list
from ..infrastructure.process_runner import ProcessRunner
from ..run_context import RunContext

logger = logging.getLogger(__name__)


def loop_count(source_duration: float, target_duration: float) -> int:
    """Copias necesarias de un clip para cubrir la duración objetivo."""
    return max(1, math.ceil(target_duration / source_duration))


class ClipPreparer:
    """Convierte un clip cualquiera en un segmento de duración y formato fijos."""

    def __init__(self, settings: Settings, runner: ProcessRunner, prober: MediaProber):
        self.settings = settings
        self.runner = runner
        self.prober = prober

    def normalize(self, clip_path: Union[str, Path], aspect: Aspect, output_path: Path) -> Path:
        """
        Escala con cover-crop a la resolución del aspecto, normaliza fps y quita el audio.
        """
        width, height = aspect.resolution(self.settings.encode.short_side)
        encode = self.settings.encode
        cmd = (
            FFmpegCommand(self.settings.ffmpeg_path)
            .input(clip_path)
            .video_filter(FilterChain().cover_crop(width, height))
            .option("-r", encode.fps)
            .option("-an")
            .option("-c:v", encode.video_codec, "-preset", encode.preset, "-pix_fmt", encode.pix_fmt)
            .output(output_path)
        )
        self.runner.run(cmd.to_args(), f"Escalando {Path(clip_path).name}")
        return output_path

    def prepare(
        self,
        clip_path: Union[str, Path],
        target_duration: float,
        aspect: Aspect = Aspect.VERTICAL,
        *,
        ctx: RunContext,
        tag: str = "clip",
        fallback_duration: Optional[float] = None,
    ) -> PreparedSegment:
        """
        Prepara un clip para que dure exactamente target_duration.

        Args:
            clip_path: Clip de origen.
            target_duration: Duración objetivo en segundos.
            aspect: Relación de aspecto de salida.
            ctx: Contexto de la ejecución (rutas de intermedios).
            tag: Prefijo de los intermedios (ej: "stage_0").
            fallback_duration: Duración a asumir si el sondeo falla.
                Si es None, el ProbeFailure se propaga.

        Returns:
            PreparedSegment con la ruta del clip final.
        """
        width, height = aspect.resolution(self.settings.encode.short_side)
        scaled_path = self.normalize(clip_path, aspect, ctx.artifact(f"{tag}_scaled_raw.mp4"))
        output_path = ctx.artifact(f"{tag}_final_loop.mp4")

        try:
            source_duration = self.prober.duration(scaled_path)
        except ProbeFailure:
            if fallback_duration is None:
                raise
            logger.warning(
                f"No se pudo sondear {scaled_path.name}; se asumen {fallback_duration:.2f}s"
            )
            source_duration = fallback_duration

        cmd = FFmpegCommand(self.settings.ffmpeg_path)
        if source_duration >= target_duration:
            cmd.input(scaled_path)
            step = f"Recortando {tag}"
        else:
            copies = loop_count(source_duration, target_duration)
            list_path = write_concat_list(
                [scaled_path] * copies, ctx.artifact(f"{tag}_loop_list.txt")
            )
            cmd.concat_input(list_path)
            step = f"Repitiendo {tag} ({copies}x)"
            logger.info(
                f"Clip de {source_duration:.2f}s repetido {copies} veces para cubrir {target_duration:.2f}s"
            )
        # Re-codificado: el corte tiene que ser exacto al frame
        encode = self.settings.encode
        (
            cmd.duration(target_duration)
            .option("-an")
            .option("-c:v", encode.video_codec, "-preset", encode.preset, "-pix_fmt", encode.pix_fmt)
            .output(output_path)
        )
        self.runner.run(cmd.to_args(), step)

        return PreparedSegment(
            path=str(output_path),
            duration=round(target_duration, 2),
            width=width,
            height=height,
        )
