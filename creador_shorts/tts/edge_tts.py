"""
Motor Edge-TTS para la narración.
Usa voces neurales de Microsoft Edge - rápido, estable, gratuito.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Union

import edge_tts
from rich.console import Console

from ..config import TtsSettings
from ..domain.errors import TtsFailure

logger = logging.getLogger(__name__)
console = Console()

DEFAULT_VOICE = "en-US-GuyNeural"


def clean_text_for_tts(text: str) -> str:
    """
    Limpia texto para síntesis TTS, removiendo elementos problemáticos.
    """
    # Remover URLs
    text = re.sub(r'https?://\S+', '', text)
    text = re.sub(r'www\.\S+', '', text)

    # Remover caracteres de markdown
    text = re.sub(r'[*_~`|<>{}[\]\\]', '', text)

    # Normalizar espacios y puntuación repetida
    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'[.]{2,}', '.', text)
    text = re.sub(r'[!]{2,}', '!', text)
    text = re.sub(r'[?]{2,}', '?', text)

    return text.strip()


class EdgeTTSEngine:
    """Motor de Text-to-Speech usando Edge-TTS (Microsoft Neural Voices)."""

    def __init__(
        self,
        voice: str = DEFAULT_VOICE,
        rate: str = "+15%",
        pitch: str = "+2Hz",
        show_progress: bool = False,
    ):
        """
        Args:
            voice: Voz a usar (ej: en-US-GuyNeural)
            rate: Velocidad del habla (ej: "+10%", "-5%")
            pitch: Tono de voz (ej: "+5Hz", "-10Hz")
            show_progress: Si mostrar el resultado en consola
        """
        self.voice = voice
        self.rate = rate
        self.pitch = pitch
        self.show_progress = show_progress

    @classmethod
    def from_settings(cls, settings: TtsSettings, **kwargs) -> "EdgeTTSEngine":
        return cls(voice=settings.voice, rate=settings.rate, pitch=settings.pitch, **kwargs)

    async def _synthesize_async(self, text: str, output_path: str) -> None:
        communicate = edge_tts.Communicate(
            text=text,
            voice=self.voice,
            rate=self.rate,
            pitch=self.pitch,
        )
        await communicate.save(output_path)

    def synthesize(self, text: str, output_path: Union[str, Path]) -> Path:
        """
        Sintetiza texto a un archivo de audio.

        Args:
            text: Texto a narrar
            output_path: Archivo de salida (.mp3)

        Returns:
            Ruta al archivo de audio

        Raises:
            TtsFailure: si Edge-TTS falla o no genera el archivo
        """
        text = clean_text_for_tts(text)
        if not text:
            raise TtsFailure("Texto vacío después de limpieza")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"🔊 Generando narración ({len(text)} caracteres, voz {self.voice})")

        try:
            asyncio.run(self._synthesize_async(text, str(output_path)))
        except Exception as e:
            logger.error(f"Error en Edge-TTS: {e}")
            raise TtsFailure(f"Edge-TTS falló: {e}") from e

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TtsFailure(f"Edge-TTS no generó el archivo: {output_path}")

        if self.show_progress:
            console.print(f"[green]✓ Audio generado: {output_path.name}[/green]")
        return output_path
