import subprocess
import sys
import threading
import time

import pytest

from creador_shorts.domain.errors import PipelineCancelled, TranscodeFailure
from creador_shorts.infrastructure.process_runner import (
    ProcessRunner,
    parse_time_token,
    progress_percent,
)


def python_command(code):
    return [sys.executable, "-c", code]


def test_parse_time_token():
    line = "frame=  123 fps=0.0 q=-1.0 size=   123kB time=00:01:05.20 bitrate= 192.0kbits/s"
    assert parse_time_token(line) == pytest.approx(65.2)
    assert parse_time_token("time=01:00:00.00") == pytest.approx(3600.0)
    assert parse_time_token("Input #0, mov,mp4") is None


def test_progress_percent_is_clamped():
    assert progress_percent(7.5, 30.0) == pytest.approx(25.0)
    assert progress_percent(45.0, 30.0) == 100.0
    assert progress_percent(5.0, 0.0) == 0.0


def test_run_reports_progress_from_stderr():
    code = (
        "import sys\n"
        "sys.stderr.write('Input #0\\n')\n"
        "sys.stderr.write('frame=1 time=00:00:07.50 bitrate=1\\r')\n"
        "sys.stderr.write('frame=2 time=00:00:15.00 bitrate=1\\n')\n"
    )
    reported = []
    result = ProcessRunner().run(python_command(code), "progreso", 30.0, reported.append)

    assert result.exit_code == 0
    assert reported[0] == pytest.approx(25.0)
    assert reported[1] == pytest.approx(50.0)
    assert reported[-1] == 100.0
    assert result.tail[0] == "Input #0"


def test_nonzero_exit_raises_with_tail():
    code = (
        "import sys\n"
        "for i in range(15):\n"
        "    sys.stderr.write(f'line {i}\\n')\n"
        "sys.exit(3)\n"
    )
    with pytest.raises(TranscodeFailure) as excinfo:
        ProcessRunner().run(python_command(code), "paso roto")

    error = excinfo.value
    assert error.step == "paso roto"
    assert error.exit_code == 3
    assert len(error.tail) == ProcessRunner.TAIL_LINES
    assert error.tail[-1] == "line 14"


def test_missing_executable_raises_transcode_failure():
    with pytest.raises(TranscodeFailure) as excinfo:
        ProcessRunner().run(["/nonexistent/ffmpeg-binary", "-version"], "sin binario")
    assert excinfo.value.exit_code is None


def test_cancel_event_set_before_run():
    event = threading.Event()
    event.set()
    with pytest.raises(PipelineCancelled):
        ProcessRunner(event).run(python_command("pass"), "cancelado")


def test_terminate_active_cancels_running_process():
    runner = ProcessRunner(threading.Event())
    errors = []

    def work():
        try:
            runner.run(python_command("import time; time.sleep(30)"), "largo")
        except PipelineCancelled as e:
            errors.append(e)

    thread = threading.Thread(target=work)
    thread.start()

    deadline = time.time() + 10
    while runner._active is None and time.time() < deadline:
        time.sleep(0.05)
    runner.cancel_event.set()
    assert runner.terminate_active() is True

    thread.join(timeout=10)
    assert not thread.is_alive()
    assert len(errors) == 1
    assert runner.terminate_active() is False


def test_failing_progress_callback_stops_the_process(monkeypatch):
    started = []
    real_popen = subprocess.Popen

    def recording_popen(*args, **kwargs):
        process = real_popen(*args, **kwargs)
        started.append(process)
        return process

    monkeypatch.setattr(subprocess, "Popen", recording_popen)
    code = (
        "import sys, time\n"
        "sys.stderr.write('frame=1 time=00:00:01.00 bitrate=1\\n')\n"
        "sys.stderr.flush()\n"
        "time.sleep(30)\n"
    )

    def broken_callback(percent):
        raise RuntimeError("callback roto")

    runner = ProcessRunner()
    with pytest.raises(RuntimeError):
        runner.run(python_command(code), "callback", 10.0, broken_callback)

    assert len(started) == 1
    assert started[0].poll() is not None
    assert runner._active is None
