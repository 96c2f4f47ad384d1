"""
Supervisor de procesos externos (FFmpeg).
Ejecuta una invocación, captura stderr línea a línea y extrae el progreso.
"""

import logging
import re
import subprocess
import threading
from collections import deque
from typing import Callable, Optional, Sequence

from ..domain.errors import PipelineCancelled, TranscodeFailure
from ..domain.models import ProcessResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# frame=  123 fps=0.0 q=-1.0 size=   123kB time=00:00:05.20 bitrate= 192.0kbits/s
TIME_PATTERN = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_time_token(line: str) -> Optional[float]:
    """Segundos del token time=HH:MM:SS.ff de una línea, o None."""
    match = TIME_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def progress_percent(elapsed: float, expected_total: float) -> float:
    """Porcentaje elapsed/expected acotado a [0, 100]."""
    if expected_total <= 0:
        return 0.0
    return max(0.0, min(100.0, elapsed / expected_total * 100))


class ProcessRunner:
    """Ejecuta comandos externos de uno en uno, sin reintentos."""

    TAIL_LINES = 10

    def __init__(self, cancel_event: Optional[threading.Event] = None):
        """
        Args:
            cancel_event: Evento de cancelación de la ejecución en curso.
                Si se activa, el proceso activo se termina.
        """
        self.cancel_event = cancel_event
        self._lock = threading.Lock()
        self._active: Optional[subprocess.Popen] = None
        self._terminated = False

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PipelineCancelled("Ejecución cancelada")

    def run(
        self,
        arguments: Sequence[str],
        step: str,
        expected_duration: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ProcessResult:
        """
        Ejecuta un comando y bloquea hasta que termine.

        Args:
            arguments: Ejecutable y argumentos.
            step: Descripción del paso (para logs y errores).
            expected_duration: Duración esperada de la salida, para el progreso.
            on_progress: Recibe el porcentaje (0-100) de cada línea con time=.

        Returns:
            ProcessResult con código 0 y la cola de stderr.

        Raises:
            TranscodeFailure: si el proceso no arranca o termina con código != 0.
            PipelineCancelled: si la ejecución fue cancelada.
        """
        self._check_cancelled()
        args = [str(a) for a in arguments]
        logger.info(f"▶ {step}")
        logger.debug("Comando: %s", " ".join(args))

        tail: deque = deque(maxlen=self.TAIL_LINES)
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise TranscodeFailure(step, None, [str(e)], reason=f"no se pudo iniciar {args[0]}") from e

        with self._lock:
            self._active = process
            self._terminated = False
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.terminate_active()

        try:
            # En modo texto '\r' también corta línea: las líneas de estado de FFmpeg llegan una a una
            for line in process.stderr:
                line = line.rstrip()
                if not line:
                    continue
                tail.append(line)
                if on_progress is not None and expected_duration:
                    elapsed = parse_time_token(line)
                    if elapsed is not None:
                        on_progress(progress_percent(elapsed, expected_duration))
            exit_code = process.wait()
        finally:
            # Si el callback falla el proceso sigue vivo con el pipe lleno
            if process.poll() is None:
                process.kill()
                process.wait()
            with self._lock:
                terminated = self._terminated
                self._active = None

        if terminated:
            raise PipelineCancelled(f"Ejecución cancelada durante '{step}'")

        if exit_code != 0:
            logger.error(f"❌ FFmpeg error en '{step}' (código {exit_code}):")
            for line in tail:
                logger.error(f"    {line}")
            raise TranscodeFailure(step, exit_code, list(tail))

        if on_progress is not None:
            on_progress(100.0)
        logger.info(f"✓ {step} completado")
        return ProcessResult(exit_code=exit_code, tail=list(tail))

    def terminate_active(self, timeout: float = 5.0) -> bool:
        """Termina el proceso activo, si lo hay. Devuelve True si había uno."""
        with self._lock:
            process = self._active
            if process is None:
                return False
            self._terminated = True

        if process.poll() is None:
            logger.warning("Terminando proceso activo por cancelación")
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                process.kill()
        return True
