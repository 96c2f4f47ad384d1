from pathlib import Path

import pytest

from creador_shorts.config import Settings
from creador_shorts.domain.errors import ProbeFailure, TranscodeFailure
from creador_shorts.domain.models import ProcessResult
from creador_shorts.run_context import RunContext


class FakeRunner:
    """Registra los comandos y crea el archivo de salida (último argumento)."""

    def __init__(self, cancel_event=None, fail_on=None):
        self.cancel_event = cancel_event
        self.fail_on = fail_on
        self.calls = []
        self.terminated = 0

    def run(self, arguments, step, expected_duration=None, on_progress=None):
        args = [str(a) for a in arguments]
        self.calls.append((step, args))
        if self.fail_on and self.fail_on in step:
            raise TranscodeFailure(step, 1, ["Invalid data found when processing input"])
        output = Path(args[-1])
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(b"\x00")
        if on_progress is not None:
            on_progress(100.0)
        return ProcessResult(exit_code=0, tail=[])

    def terminate_active(self, timeout=5.0):
        self.terminated += 1
        return False

    def steps(self):
        return [step for step, _ in self.calls]

    def args_for(self, fragment):
        return [args for step, args in self.calls if fragment in step]


class FakeProber:
    """Duraciones por nombre de archivo; los ausentes usan el valor por defecto."""

    def __init__(self, durations=None, default=None):
        self.durations = dict(durations or {})
        self.default = default
        self.probed = []

    def duration(self, media_path):
        name = Path(media_path).name
        self.probed.append(name)
        value = self.durations.get(name, self.default)
        if value is None or value <= 0:
            raise ProbeFailure(str(media_path), "duración cero")
        return value


class FakeNarrator:
    def __init__(self):
        self.texts = []

    def synthesize(self, text, output_path):
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"ID3")
        self.texts.append(text)
        return output_path


@pytest.fixture
def settings(tmp_path):
    return Settings(work_dir=str(tmp_path / "temp"), output_dir=str(tmp_path / "output"))


@pytest.fixture
def ctx(tmp_path):
    return RunContext(tmp_path / "temp", run_id="test")


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def narrator():
    return FakeNarrator()
