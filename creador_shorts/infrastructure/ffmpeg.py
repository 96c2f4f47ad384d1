"""
Construcción de comandos FFmpeg y sondeo con FFprobe.

Los filtros y argumentos se arman como objetos y solo se convierten a una
lista de strings al llegar al proceso (to_args).
"""

import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..domain.errors import ProbeFailure

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FilterChain:
    """Cadena lineal de filtros de video (-vf)."""

    def __init__(self):
        self._filters: List[str] = []

    def add(self, name: str, *args, **options) -> "FilterChain":
        """
        Agrega un filtro.

        Los argumentos posicionales se unen con ':' y las opciones se
        agregan como clave=valor, en el orden dado.
        """
        parts = [str(a) for a in args]
        parts.extend(f"{key}={value}" for key, value in options.items())
        self._filters.append(f"{name}={':'.join(parts)}" if parts else name)
        return self

    def cover_crop(self, width: int, height: int) -> "FilterChain":
        """Escala para cubrir el cuadro y recorta el sobrante."""
        return (
            self.add("scale", width, height, force_original_aspect_ratio="increase")
            .add("crop", width, height)
            .add("setsar", 1)
        )

    def __bool__(self) -> bool:
        return bool(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def render(self) -> str:
        return ",".join(self._filters)


class FFmpegCommand:
    """Constructor de una invocación de FFmpeg."""

    def __init__(self, executable: str = "ffmpeg", overwrite: bool = True):
        self.executable = executable
        self.overwrite = overwrite
        self._inputs: List[Tuple[List[str], str]] = []
        self._filters = FilterChain()
        self._options: List[str] = []
        self._output: Optional[str] = None

    def input(self, path: PathLike, *options: str) -> "FFmpegCommand":
        """Agrega una entrada; las opciones van antes de su -i."""
        self._inputs.append((list(options), str(path)))
        return self

    def concat_input(self, list_path: PathLike) -> "FFmpegCommand":
        """Entrada con el demuxer concat alimentado por una lista."""
        return self.input(list_path, "-f", "concat", "-safe", "0")

    @property
    def filters(self) -> FilterChain:
        return self._filters

    def video_filter(self, chain: FilterChain) -> "FFmpegCommand":
        self._filters = chain
        return self

    def option(self, *args) -> "FFmpegCommand":
        self._options.extend(str(a) for a in args)
        return self

    def duration(self, seconds: float) -> "FFmpegCommand":
        return self.option("-t", f"{seconds:.2f}")

    def stream_copy(self) -> "FFmpegCommand":
        return self.option("-c", "copy")

    def output(self, path: PathLike) -> "FFmpegCommand":
        self._output = str(path)
        return self

    def to_args(self) -> List[str]:
        if self._output is None:
            raise ValueError("FFmpegCommand sin archivo de salida")
        args = [self.executable]
        for options, path in self._inputs:
            args.extend(options)
            args.extend(["-i", path])
        if self._filters:
            args.extend(["-vf", self._filters.render()])
        args.extend(self._options)
        if self.overwrite:
            args.append("-y")
        args.append(self._output)
        return args


def ffmpeg_path(path: PathLike) -> str:
    """Ruta absoluta con separadores '/' (FFmpeg los acepta en cualquier SO)."""
    return str(Path(path).absolute()).replace("\\", "/")


def _backslash_escape(text: str, special: str) -> str:
    return "".join(f"\\{c}" if c in special else c for c in text)


def escape_filter_path(path: PathLike) -> str:
    """
    Escapa una ruta para usarla sin comillas como valor de una opción de filtro.

    FFmpeg la desescapa dos veces: primero como valor de la opción
    (\\ ' :) y luego como parte del grafo de filtros (\\ ' [ ] , ;).
    """
    value = _backslash_escape(str(path).replace("\\", "/"), "\\':")
    return _backslash_escape(value, "\\'[],;")


def quote_concat_path(path: PathLike) -> str:
    """Ruta entre comillas simples para una línea 'file' del demuxer concat."""
    return "'" + ffmpeg_path(path).replace("'", "'\\''") + "'"


def write_concat_list(paths: Iterable[PathLike], list_path: PathLike) -> Path:
    """Escribe una lista para el demuxer concat: file '<ruta absoluta>' por línea."""
    list_path = Path(list_path)
    list_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"file {quote_concat_path(p)}" for p in paths]
    with open(list_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return list_path


class MediaProber:
    """Obtiene la duración de un archivo (video o audio) con FFprobe."""

    def __init__(self, executable: str = "ffprobe"):
        self.executable = executable

    def command(self, media_path: PathLike) -> Sequence[str]:
        return [
            self.executable, "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(media_path),
        ]

    def duration(self, media_path: PathLike) -> float:
        """
        Duración en segundos.

        Raises:
            ProbeFailure: si FFprobe falla, la salida no es numérica o es <= 0.
        """
        try:
            result = subprocess.run(
                self.command(media_path),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise ProbeFailure(str(media_path), str(e)) from e

        output = result.stdout.strip()
        if result.returncode != 0:
            raise ProbeFailure(str(media_path), result.stderr.strip() or f"código {result.returncode}")
        try:
            value = float(output.splitlines()[0]) if output else 0.0
        except ValueError:
            raise ProbeFailure(str(media_path), f"salida no numérica: {output!r}")
        if not value > 0:
            raise ProbeFailure(str(media_path), "duración cero")

        logger.debug(f"Duración de {media_path}: {value:.2f}s")
        return value
