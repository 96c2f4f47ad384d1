"""
Contexto de una ejecución del pipeline.

Cada ejecución tiene un identificador propio y todos sus intermedios viven en
<work_root>/<run_id>/, de modo que dos ejecuciones nunca comparten archivos.
"""

import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from .domain.errors import PipelineCancelled


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class RunContext:
    work_root: Path
    run_id: str = field(default_factory=_new_run_id)
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def __post_init__(self):
        self.work_root = Path(self.work_root)

    @property
    def work_dir(self) -> Path:
        return self.work_root / self.run_id

    def ensure(self) -> Path:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        return self.work_dir

    def artifact(self, name: str) -> Path:
        """Ruta de un intermedio de esta ejecución."""
        return self.ensure() / name

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise PipelineCancelled(f"Ejecución {self.run_id} cancelada")
