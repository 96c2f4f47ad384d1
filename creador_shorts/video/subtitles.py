"""
Generador de subtítulos SRT.
Reparte la duración de la narración entre las oraciones en proporción a su
longitud, con un mínimo por subtítulo.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from ..domain.models import CaptionEntry

logger = logging.getLogger(__name__)

SENTENCE_DELIMITERS = re.compile(r"[.!?]")

MIN_ENTRY_SECONDS = 1.5
MAX_LINE_WIDTH = 40


def split_sentences(text: str) -> List[str]:
    """
    Divide el texto por puntuación final (. ! ?).

    Los fragmentos se devuelven tal cual (su longitud cuenta para el reparto);
    los que solo tienen espacios se descartan.
    """
    return [part for part in SENTENCE_DELIMITERS.split(text or "") if part.strip()]


def wrap_text(text: str, max_width: int = MAX_LINE_WIDTH) -> str:
    """Ajusta el texto a líneas de max_width caracteres sin cortar palabras."""
    text = " ".join(text.split())
    if len(text) <= max_width:
        return text

    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        if current and len(current) + 1 + len(word) > max_width:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        lines.append(current)
    return "\n".join(lines)


class CaptionTrack:
    """
    Secuencia de subtítulos perezosa y reiniciable.

    Cada iteración recalcula las entradas; list(track) las materializa.
    """

    def __init__(
        self,
        fragments: List[str],
        total_duration: float,
        min_entry_seconds: float = MIN_ENTRY_SECONDS,
        max_line_width: int = MAX_LINE_WIDTH,
        offset: float = 0.0,
        first_index: int = 1,
    ):
        self.fragments = list(fragments)
        self.total_duration = total_duration
        self.min_entry_seconds = min_entry_seconds
        self.max_line_width = max_line_width
        self.offset = offset
        self.first_index = first_index

    def raw_durations(self) -> List[float]:
        """Duraciones proporcionales sin aplicar el mínimo."""
        total_chars = sum(len(f) for f in self.fragments)
        if total_chars == 0:
            return []
        return [len(f) / total_chars * self.total_duration for f in self.fragments]

    def __iter__(self) -> Iterator[CaptionEntry]:
        if self.total_duration <= 0:
            return
        current = 0.0
        for i, (fragment, raw) in enumerate(zip(self.fragments, self.raw_durations())):
            duration = max(raw, self.min_entry_seconds)
            start = current
            end = min(start + duration, self.total_duration)
            yield CaptionEntry(
                index=self.first_index + i,
                start=self.offset + start,
                end=self.offset + end,
                text=wrap_text(fragment.strip(), self.max_line_width),
            )
            current = end

    def __len__(self) -> int:
        return len(self.fragments) if self.total_duration > 0 else 0

    def shift(self, offset: float, first_index: int = 1) -> "CaptionTrack":
        """Copia desplazada en el tiempo y renumerada."""
        return CaptionTrack(
            self.fragments,
            self.total_duration,
            self.min_entry_seconds,
            self.max_line_width,
            offset=offset,
            first_index=first_index,
        )


class SubtitleTimer:
    """Convierte narración en subtítulos temporizados."""

    def __init__(
        self,
        min_entry_seconds: float = MIN_ENTRY_SECONDS,
        max_line_width: int = MAX_LINE_WIDTH,
    ):
        self.min_entry_seconds = min_entry_seconds
        self.max_line_width = max_line_width

    def generate(self, narration_text: str, total_duration: float) -> CaptionTrack:
        """
        Args:
            narration_text: Texto completo de la narración.
            total_duration: Duración de la narración en segundos.

        Returns:
            CaptionTrack con una entrada por oración.
        """
        return CaptionTrack(
            split_sentences(narration_text),
            total_duration,
            self.min_entry_seconds,
            self.max_line_width,
        )

    def write_srt(self, entries: Iterable[CaptionEntry], output_path: Union[str, Path]) -> Path:
        """Escribe las entradas en un archivo .srt (UTF-8)."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        count = 0
        with open(output_path, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write(entry.to_srt())
                count += 1

        if count == 0:
            logger.warning(f"No se generaron subtítulos para {output_path.name}")
        else:
            logger.info(f"✅ {count} subtítulos generados → {output_path}")
        return output_path
