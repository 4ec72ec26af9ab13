"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from lossy_png.config import LossyConfig
from lossy_png.image_io import ColorConversion, CompressionResult, optimize_path
from lossy_png.report import compression_percentage, size_desc

app = typer.Typer(
    name="lossy-png",
    help="Make PNG files smaller by quantizing pixels for the PNG row filters.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()
logger = logging.getLogger("lossy_png")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _collect_images(folder: Path, extensions: frozenset[str]) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    )


def _conversion(convert_rgba: bool, convert_gray: bool) -> ColorConversion:
    # asking for both is the same as asking for neither
    if convert_rgba and not convert_gray:
        return ColorConversion.RGBA
    if convert_gray and not convert_rgba:
        return ColorConversion.GRAYSCALE
    return ColorConversion.NONE


def _print_result(result: CompressionResult) -> None:
    quality = "lossless" if result.psnr == float("inf") else f"psnr={result.psnr:.1f}dB"
    console.print(
        f"  [green]✓[/green] compressed {result.input_path.name} "
        f"({size_desc(result.input_size)}) to {result.output_path.name} "
        f"({size_desc(result.output_size)}, "
        f"{compression_percentage(result.input_size, result.output_size)})  "
        f"[dim]{quality}  time={result.elapsed:.1f}s[/dim]"
    )


def _report(future: Future[CompressionResult], path: Path) -> bool:
    """Print one finished file. A failure is logged and fails that file only."""
    try:
        result = future.result()
    except Exception as exc:
        logger.error("couldn't optimize %s: %s: %s", path, type(exc).__name__, exc)
        return False
    _print_result(result)
    return True


def _run(paths: list[Path], cfg: LossyConfig, output_dir: Path | None = None) -> int:
    """Optimise *paths* on a bounded process pool. Returns the failure count."""
    workers = cfg.workers or os.cpu_count() or 1
    workers = max(1, min(workers, len(paths)))
    logger.debug("Dispatching %d file(s) to %d worker(s)", len(paths), workers)

    failures = 0
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(optimize_path, p, cfg, output_dir): p for p in paths}
        for future in as_completed(futures):
            if not _report(future, futures[future]):
                failures += 1
    return failures


# Defaults come from LossyConfig - single source of truth
_DEFAULTS = LossyConfig()


# -- compress command --------------------------------------------------

@app.command()
def compress(
    paths: list[Path] = typer.Argument(..., help="Image files to optimize"),
    quantization: int = typer.Option(
        _DEFAULTS.quantization, "--strength", "-s", min=0,
        help="Quantization threshold, zero is lossless",
    ),
    convert_rgba: bool = typer.Option(
        False, "--rgba", "-c", help="Convert image to 32-bit colour",
    ),
    convert_gray: bool = typer.Option(
        False, "--grayscale", "-g", help="Convert image to grayscale",
    ),
    extension: str = typer.Option(
        _DEFAULTS.extension, "--extension", "-e",
        help="Filename extension of output files",
    ),
    workers: int | None = typer.Option(
        _DEFAULTS.workers, "--workers", "-w", min=1,
        help="Parallel worker processes (default: one per CPU)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Optimize each PATH, writing the result next to it."""
    _setup_logging(verbose)

    cfg = LossyConfig(
        quantization=quantization,
        conversion=_conversion(convert_rgba, convert_gray).value,
        extension=extension,
        workers=workers,
    )

    failures = _run(paths, cfg)
    if failures:
        raise typer.Exit(1)


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        _DEFAULTS.input_dir, "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        _DEFAULTS.output_dir, "--output", "-o", help="Results folder",
    ),
    quantization: int = typer.Option(
        _DEFAULTS.quantization, "--strength", "-s", min=0,
        help="Quantization threshold, zero is lossless",
    ),
    convert_rgba: bool = typer.Option(False, "--rgba", "-c"),
    convert_gray: bool = typer.Option(False, "--grayscale", "-g"),
    extension: str = typer.Option(_DEFAULTS.extension, "--extension", "-e"),
    compress_level: int = typer.Option(
        _DEFAULTS.compress_level, "--level", "-l", min=0, max=9,
        help="zlib compression level of the PNG encoder",
    ),
    workers: int | None = typer.Option(_DEFAULTS.workers, "--workers", "-w", min=1),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Optimize all images in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)

    cfg = LossyConfig(
        quantization=quantization,
        conversion=_conversion(convert_rgba, convert_gray).value,
        extension=extension,
        compress_level=compress_level,
        workers=workers,
        input_dir=input_dir,
        output_dir=output_dir,
    )

    images = _collect_images(input_dir, cfg.SUPPORTED_EXTENSIONS)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        console.print("Place .png / .jpg / ... files there and re-run.\n")
        raise typer.Exit(0)

    output_dir.mkdir(parents=True, exist_ok=True)

    console.print(Panel.fit(
        f"[bold]LOSSY PNG[/bold]\n"
        f"Strength: {cfg.quantization}  |  Conversion: {cfg.conversion}\n"
        f"Images: {len(images)}  |  Output: {output_dir}/",
        border_style="cyan",
    ))

    t0 = time.perf_counter()
    failures = _run(images, cfg, output_dir)
    elapsed = time.perf_counter() - t0

    style = "green" if not failures else "yellow"
    console.print(Panel.fit(
        f"[bold {style}]DONE[/bold {style}] - {len(images) - failures}/{len(images)} "
        f"optimized in {elapsed:.1f}s",
        border_style=style,
    ))
    if failures:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
