"""Typer CLI definition for tsumu."""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import NoReturn

import typer

from .config import load_config
from .engine import AssetEngine
from .errors import AssetError, ProviderAuthError
from .models import AssetKind, ImageRequest, Sentence
from .playback import PlaybackState
from .providers import ProviderRegistry
from .surfaces import FAILED_GLYPH, Control, Icon, ImageSurface

logger = logging.getLogger(__name__)

app = typer.Typer(help="Generated speech and pictures for Japanese study sentences")


class ConsoleControl(Control):
    """The terminal stands in for the study card's play button."""

    is_primary = True

    def set_icon(self, icon: Icon) -> None:
        logger.debug(f"Control icon: {icon.value}")


class FileImageSurface(ImageSurface):
    """Writes the picture to a file instead of a page."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.failed = False

    def show_loading(self) -> None:
        typer.echo("Generating picture...")

    def show_image(self, data: bytes) -> None:
        self.path.write_bytes(data)
        typer.echo(f"Picture saved to {self.path}")

    def show_failed(self) -> None:
        self.failed = True
        typer.echo(f"{FAILED_GLYPH} Picture unavailable", err=True)


def parse_sentences(lines: Iterable[str]) -> list[Sentence]:
    """Parse ``id<TAB>text<TAB>translation`` lines into sentences.

    Blank lines and lines starting with ``#`` are skipped.

    Raises:
        ValueError: If a line has no text column
    """
    sentences = []
    for number, line in enumerate(lines, 1):
        line = line.rstrip("\n")
        if not line.strip() or line.startswith("#"):
            continue
        columns = line.split("\t")
        if len(columns) < 2 or not columns[1].strip():
            raise ValueError(f"Line {number}: expected id<TAB>text[<TAB>translation]")
        translation = columns[2].strip() if len(columns) > 2 else None
        sentences.append(
            Sentence(
                id=columns[0].strip(),
                text=columns[1].strip(),
                translation=translation or None,
            )
        )
    return sentences


def _configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


def _exit_with_error(e: Exception, debug: bool, message: str | None = None) -> NoReturn:
    if debug:
        typer.echo(f"Debug - {type(e).__name__}: {e!r}", err=True)
    else:
        typer.echo(f"Error: {message or e}", err=True)
    raise typer.Exit(1) from None


@app.command()
def play(
    text: str = typer.Argument(..., help="Japanese text to speak"),
    voice: str | None = typer.Option(
        None, "-v", "--voice", help="Voice name (from config if omitted)"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Speech provider (from config if omitted)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and cache activity"),
) -> None:
    """Speak a sentence, from cache if possible."""
    _configure_logging(debug)
    config = load_config()

    async def _play() -> PlaybackState:
        alerts: list[str] = []
        async with AssetEngine(config, alert=alerts.append) as engine:
            if provider:
                engine.select_provider(provider, remember=False)
            if voice:
                engine.select_voice(voice, remember=False)
            session = await engine.play_text(text, ConsoleControl())
            state = await session.wait()
            if state is PlaybackState.FAILED:
                raise session.error or AssetError(alerts[0] if alerts else "Audio failed")
            return state

    try:
        asyncio.run(_play())
    except ProviderAuthError as e:
        _exit_with_error(e, debug)
    except AssetError as e:
        _exit_with_error(e, debug, f"Audio failed: {e}")
    except (KeyError, ValueError) as e:
        _exit_with_error(e, debug)


@app.command()
def image(
    subject_id: str = typer.Argument(..., help="Sentence id or story page key"),
    prompt: str = typer.Option(..., "--prompt", help="Scene text (usually the translation)"),
    output: Path = typer.Option(
        Path("picture.jpg"), "-o", "--output", help="Where to write the picture"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and cache activity"),
) -> None:
    """Fetch (or reuse) the picture for a sentence and save it."""
    _configure_logging(debug)
    config = load_config()
    surface = FileImageSurface(output)

    async def _show() -> bool:
        async with AssetEngine(config) as engine:
            return await engine.show_image(
                ImageRequest(subject_id=subject_id, prompt_text=prompt), surface
            )

    try:
        shown = asyncio.run(_show())
    except OSError as e:
        _exit_with_error(e, debug, f"Failed to save picture: {e}")
    except ValueError as e:
        _exit_with_error(e, debug)
    if not shown:
        raise typer.Exit(1)


@app.command()
def prefetch(
    file: Path = typer.Argument(..., help="TSV file of id, text and translation"),
    images: bool = typer.Option(False, "--images", help="Also warm the pictures"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and cache activity"),
) -> None:
    """Warm the cache for a list of sentences."""
    _configure_logging(debug)
    try:
        sentences = parse_sentences(file.read_text(encoding="utf-8").splitlines())
    except FileNotFoundError as e:
        _exit_with_error(e, debug, f"File not found: {file}")
    except (OSError, UnicodeDecodeError) as e:
        _exit_with_error(e, debug, f"Unable to read file: {file}")
    except ValueError as e:
        _exit_with_error(e, debug)

    config = load_config()

    async def _prefetch() -> tuple[int, int]:
        async with AssetEngine(config) as engine:
            requests = [engine.audio_request(s.text) for s in sentences]
            if images:
                requests += [s.image_request() for s in sentences if s.translation]
            return await engine.prefetch_many(requests), len(requests)

    try:
        cached, total = asyncio.run(_prefetch())
    except (KeyError, ValueError) as e:
        _exit_with_error(e, debug)
    typer.echo(f"Cached {cached}/{total} assets")
    if cached < total:
        raise typer.Exit(1)


@app.command()
def forget(
    key: str = typer.Argument(..., help="Content key (sentence id for pictures)"),
    kind: AssetKind = typer.Option(AssetKind.AUDIO, "--kind", help="Asset namespace"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and cache activity"),
) -> None:
    """Remove one asset from the cache."""
    _configure_logging(debug)
    config = load_config()

    async def _forget() -> None:
        async with AssetEngine(config) as engine:
            await engine.forget(key, kind)

    asyncio.run(_forget())
    typer.echo(f"Forgot {kind.value} '{key}'")


@app.command("cache-stats")
def cache_stats() -> None:
    """Show how many assets are cached."""
    config = load_config()

    async def _stats() -> list:
        async with AssetEngine(config) as engine:
            return [await engine.stores.audio.stats(), await engine.stores.images.stats()]

    typer.echo(f"Store: {config.store.path}")
    for stats in asyncio.run(_stats()):
        typer.echo(
            f"{stats.namespace}: {stats.persistent_entries}/{stats.persistent_capacity} stored"
        )


@app.command()
def voices(
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Speech provider (from config if omitted)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors"),
) -> None:
    """List the voices a speech provider offers."""
    _configure_logging(debug)
    name = provider or load_config().audio.provider

    try:
        voice_list = asyncio.run(ProviderRegistry.create(name).list_voices())
    except KeyError as e:
        _exit_with_error(e, debug, f"Unknown provider '{name}'")
    except AssetError as e:
        _exit_with_error(e, debug, f"Failed to list voices: {e}")

    typer.echo(f"Available voices ({name}):")
    typer.echo("-" * 50)
    for voice in voice_list:
        typer.echo(f"{voice['id']:<24} {voice['name']}")
