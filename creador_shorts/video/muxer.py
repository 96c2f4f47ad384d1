"""
Render final.
Combina el video concatenado, el audio unido y los subtítulos quemados en
una sola codificación.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from ..config import Settings
from ..domain.errors import TranscodeFailure
from ..domain.models import Project
from ..infrastructure.ffmpeg import FFmpegCommand, FilterChain, escape_filter_path
from ..infrastructure.process_runner import ProcessRunner

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Muxer:
    """Última etapa del pipeline: produce el archivo de salida del proyecto."""

    STEP = "Render final"

    def __init__(self, settings: Settings, runner: ProcessRunner):
        self.settings = settings
        self.runner = runner

    def force_style(self) -> str:
        """Estilo ASS de los subtítulos según el idioma de la narración."""
        style = self.settings.captions
        return ",".join([
            f"FontName={style.font_for(self.settings.video_language)}",
            f"FontSize={style.font_size}",
            f"PrimaryColour={style.primary_colour}",
            f"OutlineColour={style.outline_colour}",
            f"BorderStyle={style.border_style}",
            f"Outline={style.outline}",
            f"Shadow={style.shadow}",
            f"Alignment={style.alignment}",
            f"MarginV={style.margin_v}",
        ])

    def caption_filter(self, caption_file: PathLike) -> FilterChain:
        return FilterChain().add(
            "subtitles",
            escape_filter_path(caption_file),
            force_style=f"'{self.force_style()}'",
        )

    def build_command(
        self,
        output_path: PathLike,
        merged_video: PathLike,
        merged_audio: Optional[PathLike],
        caption_file: Optional[PathLike],
        total_duration: float,
    ) -> FFmpegCommand:
        encode = self.settings.encode
        cmd = FFmpegCommand(self.settings.ffmpeg_path).input(merged_video)
        if merged_audio:
            cmd.input(merged_audio)
        if caption_file and Path(caption_file).exists():
            cmd.video_filter(self.caption_filter(caption_file))

        if merged_audio:
            cmd.option("-map", "0:v", "-map", "1:a", "-c:a", encode.audio_codec, "-b:a", encode.audio_bitrate)
        else:
            cmd.option("-c:a", "copy")

        return (
            cmd.option("-c:v", encode.video_codec, "-preset", encode.preset, "-crf", encode.crf)
            .duration(total_duration)
            .option("-shortest")
            .output(output_path)
        )

    def mux(
        self,
        project: Project,
        merged_video: PathLike,
        merged_audio: Optional[PathLike],
        caption_file: Optional[PathLike],
        total_duration: float,
        progress: Optional[Callable[[float], None]] = None,
    ) -> Path:
        """
        Renderiza el video final en project.output_path.

        Raises:
            TranscodeFailure: si FFmpeg falla o no se genera el archivo.
        """
        output_path = Path(project.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = self.build_command(output_path, merged_video, merged_audio, caption_file, total_duration)
        logger.info(f"Renderizando video final ({total_duration:.2f}s): {output_path}")
        result = self.runner.run(cmd.to_args(), self.STEP, total_duration, progress)

        if not output_path.exists():
            raise TranscodeFailure(self.STEP, result.exit_code, result.tail, reason="no se generó el archivo de salida")
        return output_path
