"""
Pipeline principal de ensamblado.
Coordina etapas → concatenación → subtítulos → render final.
"""

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel

from .config import Settings
from .domain.errors import NoInputMedia, ProbeFailure
from .domain.models import CaptionEntry, PreparedSegment, ProgressEvent, Project
from .infrastructure.ffmpeg import MediaProber
from .infrastructure.process_runner import ProcessRunner
from .run_context import RunContext
from .video.clip_preparer import ClipPreparer
from .video.concat import ConcatAssembler
from .video.muxer import Muxer
from .video.stages import StageSynthesizer, resolve_stage_clip
from .video.subtitles import SubtitleTimer

logger = logging.getLogger(__name__)
console = Console()

STEP_STAGES = "Preparando etapas"
STEP_CLIPS = "Escalando clips"
STEP_RENDER = "Render final"


class ProgressChannel:
    """
    Canal de eventos de progreso entre el hilo del pipeline y quien lo observa.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()

    def emit(self, step: str, percent: float) -> None:
        self._queue.put(ProgressEvent(step=step, percent=max(0.0, min(100.0, percent))))

    def reporter(self, step: str) -> Callable[[float], None]:
        """Callback de porcentaje para un paso; arranca el paso en 0."""
        self.emit(step, 0.0)
        return lambda percent: self.emit(step, percent)

    def close(self) -> None:
        self._queue.put(self._CLOSED)

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class PipelineRun:
    """Ejecución en segundo plano: eventos, resultado y cancelación."""

    def __init__(self, ctx: RunContext, channel: ProgressChannel, future: Future, runner: ProcessRunner):
        self.ctx = ctx
        self.channel = channel
        self.future = future
        self.runner = runner

    @property
    def run_id(self) -> str:
        return self.ctx.run_id

    def events(self) -> Iterator[ProgressEvent]:
        return iter(self.channel)

    def result(self, timeout: Optional[float] = None) -> Path:
        return self.future.result(timeout=timeout)

    def done(self) -> bool:
        return self.future.done()

    def cancel(self) -> None:
        """Marca la cancelación y termina el proceso externo activo."""
        logger.warning(f"Cancelando ejecución {self.ctx.run_id}")
        self.ctx.cancel()
        self.runner.terminate_active()


class AssemblyPipeline:
    """Orquestador del ensamblado de un short vertical."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        narrator=None,
        prober: Optional[MediaProber] = None,
        runner_factory: Callable[..., ProcessRunner] = ProcessRunner,
    ):
        """
        Args:
            settings: Configuración (por defecto Settings()).
            narrator: Sintetizador de voz; por defecto Edge-TTS.
            prober: Sondeo de duraciones; por defecto FFprobe.
            runner_factory: Crea el ProcessRunner de cada ejecución a partir
                de su evento de cancelación.
        """
        self.settings = settings or Settings()
        self.prober = prober or MediaProber(self.settings.ffprobe_path)
        self.runner_factory = runner_factory
        self.subtitles = SubtitleTimer(
            self.settings.captions.min_entry_seconds,
            self.settings.captions.max_line_width,
        )
        self._narrator = narrator

    @property
    def narrator(self):
        if self._narrator is None:
            from .tts.edge_tts import EdgeTTSEngine
            self._narrator = EdgeTTSEngine.from_settings(self.settings.tts)
        return self._narrator

    def new_context(self) -> RunContext:
        return RunContext(Path(self.settings.work_dir))

    def start(self, project: Project) -> PipelineRun:
        """Lanza la ejecución en un hilo propio y devuelve su handle."""
        ctx = self.new_context()
        runner = self.runner_factory(ctx.cancel_event)
        channel = ProgressChannel()

        def work() -> Path:
            try:
                return self.run(project, ctx=ctx, progress=channel, runner=runner)
            finally:
                channel.close()

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"assembly-{ctx.run_id}")
        future = executor.submit(work)
        executor.shutdown(wait=False)
        return PipelineRun(ctx, channel, future, runner)

    def run(
        self,
        project: Project,
        ctx: Optional[RunContext] = None,
        progress: Optional[ProgressChannel] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> Path:
        """
        Ejecuta el pipeline completo y bloquea hasta terminar.

        Returns:
            Ruta del video final.
        """
        ctx = ctx or self.new_context()
        runner = runner or self.runner_factory(ctx.cancel_event)

        preparer = ClipPreparer(self.settings, runner, self.prober)
        concat = ConcatAssembler(self.settings, runner)
        muxer = Muxer(self.settings, runner)

        mode = "por etapas" if project.is_staged else "clásico"
        console.print(Panel(
            f"[bold cyan]ENSAMBLADO DE VIDEO[/bold cyan]\n"
            f"Modo: {mode}\n"
            f"Ejecución: {ctx.run_id}\n"
            f"Salida: {project.output_path}",
            title="Pipeline",
        ))

        if project.is_staged:
            video, audio, captions, total = self._run_staged(project, ctx, preparer, concat, progress)
        else:
            video, audio, captions, total = self._run_legacy(project, ctx, preparer, concat, progress)

        ctx.raise_if_cancelled()
        output = muxer.mux(
            project, video, audio, captions, total,
            progress.reporter(STEP_RENDER) if progress else None,
        )

        console.print(f"[bold green]✓ Video completo: {output.absolute()}[/bold green]")
        return output

    def _stage_synthesizer(self, preparer: ClipPreparer) -> StageSynthesizer:
        return StageSynthesizer(self.settings, self.prober, preparer, self.narrator)

    def _run_staged(
        self,
        project: Project,
        ctx: RunContext,
        preparer: ClipPreparer,
        concat: ConcatAssembler,
        progress: Optional[ProgressChannel],
    ) -> Tuple[Path, Optional[Path], Optional[Path], float]:
        clips = [resolve_stage_clip(s, i, project.clip_paths) for i, s in enumerate(project.stages)]
        if not any(clips):
            raise NoInputMedia("Ninguna etapa tiene un clip disponible")

        synthesizer = self._stage_synthesizer(preparer)
        report = progress.reporter(STEP_STAGES) if progress else None

        segments: List[PreparedSegment] = []
        audios: List[Optional[str]] = []
        durations: List[float] = []
        texts: List[str] = []
        total_duration = 0.0

        for i, (stage, clip) in enumerate(zip(project.stages, clips)):
            ctx.raise_if_cancelled()
            if clip is None:
                logger.warning(f"Etapa {i + 1} sin clip; se omite")
                continue

            text = project.stage_text(i)
            output = synthesizer.synthesize(stage, text, ctx=ctx, index=i, clip_path=clip)
            segments.append(output.segment)
            audios.append(output.audio_path)
            durations.append(output.duration)
            texts.append(text if output.audio_path else "")
            total_duration += output.duration

            console.print(f"  🎞️ Etapa {i + 1} lista ({output.duration:.2f}s)")
            if report:
                report((i + 1) / len(project.stages) * 100)

        ctx.raise_if_cancelled()
        video = concat.concat_videos(segments, ctx=ctx)

        audio_tracks: List[Path] = []
        if any(audios):
            # Las etapas mudas necesitan silencio para no adelantar la narración siguiente
            for i, (audio, duration) in enumerate(zip(audios, durations)):
                if audio:
                    audio_tracks.append(Path(audio))
                else:
                    audio_tracks.append(concat.silence(duration, ctx.artifact(f"stage_{i}_silence.mp3")))
        audio = concat.concat_audios(audio_tracks, ctx=ctx)

        captions = self._existing_captions(project)
        if captions is None and self.settings.generate_captions:
            captions = self._staged_captions(texts, durations, ctx)

        return video, audio, captions, total_duration

    def _run_legacy(
        self,
        project: Project,
        ctx: RunContext,
        preparer: ClipPreparer,
        concat: ConcatAssembler,
        progress: Optional[ProgressChannel],
    ) -> Tuple[Path, Optional[Path], Optional[Path], float]:
        if not project.clip_paths:
            raise NoInputMedia("No hay clips de video disponibles")

        audio_path: Optional[Path] = None
        if project.audio_path and Path(project.audio_path).exists():
            audio_path = Path(project.audio_path)
        duration = project.narration_duration

        if audio_path is None and project.script.strip():
            audio_path = self.narrator.synthesize(project.script, ctx.artifact("voiceover.mp3"))
            duration = 0.0

        if audio_path is not None and duration <= 0:
            try:
                duration = self.prober.duration(audio_path)
                logger.info(f"⏱️ Duración de la narración: {duration:.1f}s")
            except ProbeFailure as e:
                logger.warning(f"{e}; se usará la duración por defecto")

        ctx.raise_if_cancelled()
        synthesizer = self._stage_synthesizer(preparer)
        list_path, target = synthesizer.build_legacy(
            project.clip_paths,
            duration if audio_path else 0.0,
            ctx=ctx,
            on_progress=progress.reporter(STEP_CLIPS) if progress else None,
        )

        ctx.raise_if_cancelled()
        video = concat.concat_playlist(list_path, ctx.artifact("basic_concat.mp4"), "Concatenando clips")
        audio = concat.concat_audios([audio_path] if audio_path else [], ctx=ctx)

        captions = self._existing_captions(project)
        if captions is None and audio_path is not None and self.settings.generate_captions:
            entries = list(self.subtitles.generate(project.script, target))
            if entries:
                captions = self.subtitles.write_srt(entries, ctx.artifact("subtitles.srt"))

        return video, audio, captions, target

    def _existing_captions(self, project: Project) -> Optional[Path]:
        if project.caption_path and Path(project.caption_path).exists():
            return Path(project.caption_path)
        return None

    def _staged_captions(self, texts: List[str], durations: List[float], ctx: RunContext) -> Optional[Path]:
        """Subtítulos de cada etapa narrada, desplazados al inicio de su etapa."""
        entries: List[CaptionEntry] = []
        offset = 0.0
        for text, duration in zip(texts, durations):
            if text.strip():
                track = self.subtitles.generate(text, duration).shift(offset, first_index=len(entries) + 1)
                entries.extend(track)
            offset += duration

        if not entries:
            return None
        return self.subtitles.write_srt(entries, ctx.artifact("subtitles.srt"))
