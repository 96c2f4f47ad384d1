"""
Errores del pipeline de ensamblado.

Los fallos de sondeo (ProbeFailure) tienen fallback documentado; el resto
aborta la ejecución y deja los intermedios en el directorio de trabajo.
"""

from typing import List, Optional


class AssemblyError(Exception):
    """Error base del pipeline de ensamblado."""


class ProbeFailure(AssemblyError):
    """La duración de un archivo no se pudo leer o es cero."""

    def __init__(self, path: str, detail: str = ""):
        self.path = str(path)
        self.detail = detail
        message = f"No se pudo leer la duración de '{self.path}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class TranscodeFailure(AssemblyError):
    """FFmpeg terminó con código distinto de cero (o no generó salida)."""

    def __init__(
        self,
        step: str,
        exit_code: Optional[int],
        tail: Optional[List[str]] = None,
        reason: str = "",
    ):
        self.step = step
        self.exit_code = exit_code
        self.tail = list(tail or [])
        if reason:
            message = f"FFmpeg falló en '{step}': {reason}"
        else:
            message = f"FFmpeg falló en '{step}' con código de salida {exit_code}"
        super().__init__(message)


class TtsFailure(AssemblyError):
    """La síntesis de voz falló o no produjo archivo."""


class NoInputMedia(AssemblyError):
    """No hay ningún clip utilizable para una etapa o para el video."""


class ZeroDurationClips(NoInputMedia):
    """Todos los clips candidatos tienen duración cero o ilegible."""


class PipelineCancelled(AssemblyError):
    """La ejecución fue cancelada por quien la invocó."""
