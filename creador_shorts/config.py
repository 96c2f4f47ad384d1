"""
Configuración del ensamblador.
Se construye una vez y se pasa explícitamente a cada componente.
"""

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

DEFAULT_CONFIG_PATH = "config/config.yaml"

# Variables de entorno que sobreescriben el YAML: (sección, campo)
ENV_OVERRIDES = {
    "FFMPEG_PATH": (None, "ffmpeg_path"),
    "FFPROBE_PATH": (None, "ffprobe_path"),
    "TEMP_DIR": (None, "work_dir"),
    "OUTPUT_DIR": (None, "output_dir"),
    "VIDEO_LANGUAGE": (None, "video_language"),
    "TTS_VOICE": ("tts", "voice"),
}


class EncodeSettings(BaseModel):
    short_side: int = 1080
    fps: int = 30
    video_codec: str = "libx264"
    preset: str = "fast"
    crf: int = 23
    pix_fmt: str = "yuv420p"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    # Formato de la narración de Edge-TTS (mp3 mono 24 kHz)
    narration_sample_rate: int = 24000
    narration_bitrate: str = "48k"


class TtsSettings(BaseModel):
    voice: str = "en-US-GuyNeural"
    rate: str = "+15%"
    pitch: str = "+2Hz"


class CaptionStyle(BaseModel):
    """Estilo 'force_style' para el filtro subtitles de FFmpeg."""
    font_name: str = "Arial"
    font_size: int = 28
    primary_colour: str = "&H00FFFFFF"
    outline_colour: str = "&H00000000"
    border_style: int = 1
    outline: float = 2.0
    shadow: int = 0
    alignment: int = 2
    margin_v: int = 80
    # Sustitución de fuente para escrituras no latinas
    language_fonts: Dict[str, str] = Field(default_factory=lambda: {
        "Hebrew": "Open Sans Hebrew",
        "Arabic": "Noto Sans Arabic",
        "Russian": "DejaVu Sans",
        "Hindi": "Noto Sans Devanagari",
        "Japanese": "Noto Sans CJK JP",
        "Chinese": "Noto Sans CJK SC",
        "Korean": "Noto Sans CJK KR",
    })
    max_line_width: int = 40
    min_entry_seconds: float = 1.5

    def font_for(self, language: str) -> str:
        return self.language_fonts.get(language, self.font_name)


class Settings(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    work_dir: str = "./temp"
    output_dir: str = "./output"
    video_language: str = "English"

    # Duraciones por defecto (segundos)
    silent_stage_seconds: float = 10.0
    silent_video_seconds: float = 15.0
    legacy_buffer_seconds: float = 5.0
    legacy_max_picks: int = 100
    clip_probe_fallback_seconds: Optional[float] = 5.0

    generate_captions: bool = True

    encode: EncodeSettings = Field(default_factory=EncodeSettings)
    tts: TtsSettings = Field(default_factory=TtsSettings)
    captions: CaptionStyle = Field(default_factory=CaptionStyle)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Settings":
        """
        Carga la configuración desde YAML y aplica variables de entorno.

        Args:
            config_path: Ruta al YAML. Si no existe se usan los valores por defecto.
        """
        data: dict = {}
        config_file = Path(config_path or DEFAULT_CONFIG_PATH)
        if config_file.exists():
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if not value:
                continue
            if section:
                data.setdefault(section, {})[key] = value
            else:
                data[key] = value

        return cls(**data)
