"""Módulo de síntesis de voz."""

from .edge_tts import EdgeTTSEngine, clean_text_for_tts

__all__ = ["EdgeTTSEngine", "clean_text_for_tts"]
