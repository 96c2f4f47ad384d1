"""
Concatenación de segmentos.
Une segmentos de video o pistas de audio con el demuxer concat (sin recodificar).
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..config import Settings
from ..domain.errors import NoInputMedia
from ..domain.models import PreparedSegment
from ..infrastructure.ffmpeg import FFmpegCommand, write_concat_list
from ..infrastructure.process_runner import ProcessRunner
from ..run_context import RunContext

logger = logging.getLogger(__name__)


class ConcatAssembler:
    """Arma listas de reproducción y concatena por copia de streams."""

    def __init__(self, settings: Settings, runner: ProcessRunner):
        self.settings = settings
        self.runner = runner

    def concat_playlist(self, list_path: Path, output_path: Path, step: str) -> Path:
        """Concatena lo que indica una lista ya escrita."""
        cmd = (
            FFmpegCommand(self.settings.ffmpeg_path)
            .concat_input(list_path)
            .stream_copy()
            .output(output_path)
        )
        self.runner.run(cmd.to_args(), step)
        return output_path

    def silence(self, duration: float, output_path: Path) -> Path:
        """Pista muda con el mismo formato que la narración de Edge-TTS."""
        encode = self.settings.encode
        cmd = (
            FFmpegCommand(self.settings.ffmpeg_path)
            .input(f"anullsrc=r={encode.narration_sample_rate}:cl=mono", "-f", "lavfi")
            .duration(duration)
            .option("-c:a", "libmp3lame", "-b:a", encode.narration_bitrate)
            .output(output_path)
        )
        self.runner.run(cmd.to_args(), f"Silencio de {duration:.2f}s")
        return output_path

    def concat_videos(self, segments: Sequence[PreparedSegment], *, ctx: RunContext) -> Path:
        """Une los segmentos de video en orden."""
        if not segments:
            raise NoInputMedia("No hay segmentos de video para concatenar")

        list_path = write_concat_list(
            [s.path for s in segments], ctx.artifact("final_video_list.txt")
        )
        logger.info(f"Concatenando {len(segments)} segmentos de video")
        return self.concat_playlist(
            list_path, ctx.artifact("final_no_audio.mp4"), "Concatenación final de video"
        )

    def concat_audios(
        self,
        audio_paths: Sequence[Union[str, Path]],
        *,
        ctx: RunContext,
    ) -> Optional[Path]:
        """
        Une las pistas de audio en orden.

        Con una sola pista se devuelve tal cual; sin pistas devuelve None.
        """
        paths: List[Path] = [Path(p) for p in audio_paths]
        if not paths:
            return None
        if len(paths) == 1:
            return paths[0]

        list_path = write_concat_list(paths, ctx.artifact("final_audio_list.txt"))
        return self.concat_playlist(
            list_path, ctx.artifact("final_merged_audio.mp3"), "Concatenación final de audio"
        )
