"""Módulo de ensamblado de video."""

from .clip_preparer import ClipPreparer
from .concat import ConcatAssembler
from .muxer import Muxer
from .stages import StageSynthesizer
from .subtitles import CaptionTrack, SubtitleTimer

__all__ = ["CaptionTrack", "ClipPreparer", "ConcatAssembler", "Muxer", "StageSynthesizer", "SubtitleTimer"]
