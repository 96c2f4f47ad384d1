import threading
from pathlib import Path

import pytest

from creador_shorts.domain.errors import NoInputMedia, PipelineCancelled, TranscodeFailure
from creador_shorts.domain.models import Project, Stage
from creador_shorts.pipeline import AssemblyPipeline, ProgressChannel

from .conftest import FakeProber, FakeRunner


def staged_project(tmp_path, **kwargs):
    data = dict(
        topic="Océanos",
        clip_paths=["a.mp4", "b.mp4"],
        stage_texts=["Hello world. This is a test!", ""],
        stages=[Stage(goal="hook", visual_search="ocean"), Stage(goal="outro")],
        output_path=str(tmp_path / "output" / "short.mp4"),
    )
    data.update(kwargs)
    return Project(**data)


def stage_prober():
    return FakeProber({
        "stage_0_audio.mp3": 13.0,
        "stage_0_scaled_raw.mp4": 20.0,
        "stage_1_scaled_raw.mp4": 20.0,
    })


def test_staged_flow(settings, narrator, runner, ctx, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober(), runner_factory=FakeRunner)

    output = pipeline.run(staged_project(tmp_path), ctx=ctx, runner=runner)

    assert output == Path(tmp_path / "output" / "short.mp4")
    assert output.exists()
    assert narrator.texts == ["Hello world. This is a test!"]
    assert "Silencio de 10.00s" in runner.steps()

    audio_list = ctx.artifact("final_audio_list.txt").read_text(encoding="utf-8").splitlines()
    assert audio_list[0].endswith("stage_0_audio.mp3'")
    assert audio_list[1].endswith("stage_1_silence.mp3'")

    srt = ctx.artifact("subtitles.srt").read_text(encoding="utf-8")
    assert srt.count(" --> ") == 2
    assert "00:00:05,500 --> 00:00:13,000" in srt

    final = runner.args_for("Render final")[0]
    assert final[final.index("-t") + 1] == "23.00"
    assert final[final.index("-i") + 1].endswith("final_no_audio.mp4")
    assert "1:a" in final
    assert "-vf" in final


def test_staged_captions_follow_stage_offsets(settings, narrator, runner, ctx, tmp_path):
    prober = stage_prober()
    prober.durations["stage_1_audio.mp3"] = 4.0
    project = staged_project(tmp_path, stage_texts=["Uno dos tres.", "Cuatro."])
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=prober)

    pipeline.run(project, ctx=ctx, runner=runner)

    srt = ctx.artifact("subtitles.srt").read_text(encoding="utf-8")
    assert srt.startswith("1\n00:00:00,000 --> 00:00:13,000\nUno dos tres\n")
    assert "2\n00:00:13,000 --> 00:00:17,000\nCuatro\n" in srt
    assert not any("Silencio" in step for step in runner.steps())


def test_staged_all_silent_has_no_audio(settings, narrator, runner, ctx, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober())
    project = staged_project(tmp_path, stage_texts=[])

    pipeline.run(project, ctx=ctx, runner=runner)

    final = runner.args_for("Render final")[0]
    assert final.count("-i") == 1
    assert final[final.index("-c:a") + 1] == "copy"
    assert final[final.index("-t") + 1] == "20.00"
    assert narrator.texts == []


def test_existing_caption_file_is_used(settings, narrator, runner, ctx, tmp_path):
    captions = tmp_path / "mine.srt"
    captions.write_text("1\n00:00:00,000 --> 00:00:02,000\nHola\n\n", encoding="utf-8")
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober())

    pipeline.run(staged_project(tmp_path, caption_path=str(captions)), ctx=ctx, runner=runner)

    assert not ctx.artifact("subtitles.srt").exists()
    vf = runner.args_for("Render final")[0]
    assert "mine.srt" in " ".join(vf)


def test_staged_without_any_clip(settings, narrator, runner, ctx, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober())

    with pytest.raises(NoInputMedia):
        pipeline.run(staged_project(tmp_path, clip_paths=[]), ctx=ctx, runner=runner)
    assert runner.calls == []


def test_legacy_flow_synthesizes_voiceover(settings, narrator, runner, ctx, tmp_path):
    prober = FakeProber({"voiceover.mp3": 8.0, "scaled_0.mp4": 5.0})
    project = Project(
        script="Uno. Dos.",
        clip_paths=["a.mp4"],
        output_path=str(tmp_path / "output" / "legacy.mp4"),
    )
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=prober)

    output = pipeline.run(project, ctx=ctx, runner=runner)

    assert output.exists()
    assert narrator.texts == ["Uno. Dos."]
    assert len(ctx.artifact("basic_list.txt").read_text(encoding="utf-8").splitlines()) == 3
    final = runner.args_for("Render final")[0]
    assert final[final.index("-t") + 1] == "8.00"
    assert final[4].endswith("voiceover.mp3")
    assert ctx.artifact("subtitles.srt").exists()


def test_legacy_flow_with_given_audio(settings, narrator, runner, ctx, tmp_path):
    audio = tmp_path / "narration.mp3"
    audio.write_bytes(b"ID3")
    project = Project(
        script="Hola mundo.",
        clip_paths=["a.mp4"],
        audio_path=str(audio),
        narration_duration=9.0,
        output_path=str(tmp_path / "legacy.mp4"),
    )
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=FakeProber({"scaled_0.mp4": 30.0}))

    pipeline.run(project, ctx=ctx, runner=runner)

    assert narrator.texts == []
    final = runner.args_for("Render final")[0]
    assert final[4] == str(audio)
    assert final[final.index("-t") + 1] == "9.00"


def test_legacy_silent_video(settings, narrator, runner, ctx, tmp_path):
    project = Project(clip_paths=["a.mp4"], output_path=str(tmp_path / "silent.mp4"))
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=FakeProber({"scaled_0.mp4": 30.0}))

    pipeline.run(project, ctx=ctx, runner=runner)

    final = runner.args_for("Render final")[0]
    assert final[final.index("-t") + 1] == "15.00"
    assert "-vf" not in final


def test_legacy_without_clips(settings, narrator, runner, ctx, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=FakeProber())
    with pytest.raises(NoInputMedia):
        pipeline.run(Project(script="Hola.", output_path=str(tmp_path / "x.mp4")), ctx=ctx, runner=runner)


def test_cancelled_context_stops_before_work(settings, narrator, runner, ctx, tmp_path):
    ctx.cancel()
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober())

    with pytest.raises(PipelineCancelled):
        pipeline.run(staged_project(tmp_path), ctx=ctx, runner=runner)
    assert runner.calls == []


def test_progress_channel_clamps_and_closes():
    channel = ProgressChannel()
    report = channel.reporter("Render final")
    report(150.0)
    channel.close()

    events = list(channel)
    assert [(e.step, e.percent) for e in events] == [("Render final", 0.0), ("Render final", 100.0)]


def test_start_runs_in_background(settings, narrator, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober(), runner_factory=FakeRunner)

    run = pipeline.start(staged_project(tmp_path))
    events = list(run.events())
    output = run.result(timeout=30)

    assert output.exists()
    assert run.done()
    steps = {e.step for e in events}
    assert {"Preparando etapas", "Render final"} <= steps
    assert events[-1].step == "Render final"
    assert events[-1].percent == 100.0
    assert (Path(settings.work_dir) / run.run_id / "final_no_audio.mp4").exists()


def test_start_surfaces_transcode_failure(settings, narrator, tmp_path):
    pipeline = AssemblyPipeline(
        settings,
        narrator=narrator,
        prober=stage_prober(),
        runner_factory=lambda event: FakeRunner(event, fail_on="Render final"),
    )

    run = pipeline.start(staged_project(tmp_path))
    list(run.events())

    with pytest.raises(TranscodeFailure) as excinfo:
        run.result(timeout=30)
    assert excinfo.value.tail == ["Invalid data found when processing input"]


class BlockingRunner(FakeRunner):
    """Se queda en el primer comando hasta que lo terminan, como FFmpeg en curso."""

    def __init__(self, cancel_event=None):
        super().__init__(cancel_event)
        self.started = threading.Event()
        self.released = threading.Event()

    def run(self, arguments, step, expected_duration=None, on_progress=None):
        self.calls.append((step, [str(a) for a in arguments]))
        self.started.set()
        if not self.released.wait(timeout=10):
            raise AssertionError("terminate_active nunca fue llamado")
        raise PipelineCancelled(f"Ejecución cancelada durante '{step}'")

    def terminate_active(self, timeout=5.0):
        self.terminated += 1
        self.released.set()
        return True


def test_cancel_during_run_stops_active_process(settings, narrator, tmp_path):
    pipeline = AssemblyPipeline(settings, narrator=narrator, prober=stage_prober(), runner_factory=BlockingRunner)
    run = pipeline.start(staged_project(tmp_path))
    assert run.runner.started.wait(timeout=10)

    run.cancel()
    list(run.events())

    with pytest.raises(PipelineCancelled):
        run.result(timeout=10)
    assert run.ctx.cancelled
    assert run.runner.terminated == 1
    assert len(run.runner.calls) == 1
    assert not (tmp_path / "output" / "short.mp4").exists()
