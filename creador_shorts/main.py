"""
Entrada principal del ensamblador de shorts.
Lee un proyecto (YAML o JSON), ejecuta el pipeline y muestra el progreso.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from .config import Settings
from .domain.errors import AssemblyError, PipelineCancelled, TranscodeFailure
from .domain.models import Project
from .pipeline import AssemblyPipeline

logger = logging.getLogger(__name__)
console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 2


def load_project(path: str, output: Optional[str] = None, output_dir: str = "./output") -> Project:
    """
    Carga un proyecto desde YAML o JSON.

    Sin output_path el video va a <output_dir>/<nombre del proyecto>.mp4.
    """
    project_file = Path(path)
    with open(project_file, "r", encoding="utf-8") as f:
        if project_file.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f) or {}
    if output:
        data["output_path"] = output
    data.setdefault("output_path", str(Path(output_dir) / f"{project_file.stem}.mp4"))
    return Project(**data)


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="creador-shorts",
        description="Ensamblador de shorts verticales con FFmpeg",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("project", help="Archivo del proyecto (.yaml o .json)")
    parser.add_argument("--config", help="Archivo de configuración (default: config/config.yaml)")
    parser.add_argument("-o", "--output", help="Ruta del video final (sobreescribe output_path)")
    parser.add_argument("--language", help="Idioma de la narración (elige la fuente de subtítulos)")
    parser.add_argument("--voice", help="Voz de Edge-TTS")
    parser.add_argument("--no-captions", action="store_true", help="No generar subtítulos")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Nivel de logging (default: LOG_LEVEL o INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = Settings.load(args.config)
    if args.language:
        settings.video_language = args.language
    if args.voice:
        settings.tts.voice = args.voice
    if args.no_captions:
        settings.generate_captions = False

    try:
        project = load_project(args.project, args.output, settings.output_dir)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]✗ No se pudo cargar el proyecto: {e}[/red]")
        return EXIT_FAILED

    pipeline = AssemblyPipeline(settings)
    run = pipeline.start(project)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            tasks = {}
            for event in run.events():
                if event.step not in tasks:
                    tasks[event.step] = progress.add_task(event.step, total=100)
                progress.update(tasks[event.step], completed=event.percent)
        output = run.result()
    except KeyboardInterrupt:
        run.cancel()
        console.print("[yellow]Cancelando...[/yellow]")
        try:
            run.result()
        except AssemblyError as e:
            logger.debug(f"Ejecución detenida: {e}")
        console.print(f"[yellow]Ejecución {run.run_id} cancelada[/yellow]")
        return EXIT_CANCELLED
    except PipelineCancelled:
        console.print(f"[yellow]Ejecución {run.run_id} cancelada[/yellow]")
        return EXIT_CANCELLED
    except TranscodeFailure as e:
        console.print(f"[red]✗ {e}[/red]")
        for line in e.tail:
            console.print(f"    [dim]{line}[/dim]")
        return EXIT_FAILED
    except AssemblyError as e:
        console.print(f"[red]✗ {e}[/red]")
        return EXIT_FAILED

    console.print(Panel(
        f"[bold green]Video listo[/bold green]\n{output}",
        title="Creador de Shorts",
    ))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
