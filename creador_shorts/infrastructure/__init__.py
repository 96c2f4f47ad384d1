"""Infraestructura: procesos externos y construcción de comandos FFmpeg."""

from .ffmpeg import FFmpegCommand, FilterChain, MediaProber, write_concat_list
from .process_runner import ProcessRunner

__all__ = ["FFmpegCommand", "FilterChain", "MediaProber", "ProcessRunner", "write_concat_list"]
