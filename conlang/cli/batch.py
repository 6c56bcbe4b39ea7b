"""Batch processing CLI.

Wires process signals to the run-control token:
- SIGINT / SIGTERM request a graceful stop (in-flight word commits, then
  checkpoint and flush)
- SIGUSR1 toggles pause/resume
"""

import asyncio
import signal
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
)

from conlang.config import get_settings
from conlang.core.types import PronunciationMode, SearchDirection, Style
from conlang.errors import CheckpointIOError, CheckpointLockedError, DictionaryIOError
from conlang.language import LanguageBuilder, checkpoint_store, create_enrichment
from conlang.observ import get_logger
from conlang.storage.batch import BatchProgress, RunControl
from conlang.storage.dictionaries import DictionaryWriter

logger = get_logger(__name__)
console = Console()

STYLE_CHOICES = [s.value for s in Style]


def read_words(path: Path) -> list[str]:
    """One word per line; surrounding whitespace and blank lines dropped."""
    with open(path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def install_signal_handlers(control: RunControl) -> None:
    loop = asyncio.get_running_loop()

    def toggle_pause():
        if control.paused:
            control.resume()
            click.echo("Resuming...")
        else:
            control.pause()
            click.echo("Pausing at the next word boundary (send SIGUSR1 again to resume)...")

    def stop():
        click.echo("Stop requested, finishing the current word...")
        control.request_stop()

    try:
        loop.add_signal_handler(signal.SIGINT, stop)
        loop.add_signal_handler(signal.SIGTERM, stop)
        if hasattr(signal, "SIGUSR1"):
            loop.add_signal_handler(signal.SIGUSR1, toggle_pause)
    except NotImplementedError:
        logger.warning("signal_handlers_unavailable")


def open_language(name, style, output_dir, enrich, plain, seed) -> LanguageBuilder:
    settings = get_settings()
    enrichment = create_enrichment(settings) if enrich else None
    kwargs = {}
    if seed is not None:
        kwargs["seed"] = seed
    if plain:
        kwargs["mode"] = PronunciationMode.PLAIN
    return LanguageBuilder.open(
        name,
        style=style,
        output_dir=Path(output_dir) if output_dir else None,
        enrichment=enrichment,
        **kwargs,
    )


@click.group()
def cli():
    """Constructed-language vocabulary builder"""
    pass


@cli.command()
@click.argument('name')
@click.argument('word_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--style', type=click.Choice(STYLE_CHOICES), default=None, help='Transformation style (new languages only)')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
@click.option('--save-interval', type=int, default=None, help='Checkpoint every N words')
@click.option('--fresh', is_flag=True, help='Ignore any existing checkpoint')
@click.option('--enrich/--no-enrich', default=None, help='Query the enrichment service')
@click.option('--plain', is_flag=True, help='Plain-character pronunciations')
@click.option('--seed', type=int, default=None, help='Variation seed')
def process(name, word_file, style, output_dir, save_interval, fresh, enrich, plain, seed):
    """Process WORD_FILE into the language NAME."""
    if enrich is None:
        enrich = get_settings().use_enrichment

    async def _process():
        builder = open_language(name, style, output_dir, enrich, plain, seed)
        control = RunControl()
        install_signal_handlers(control)

        words = read_words(Path(word_file))
        console.print(f"[bold]Processing {len(words):,} words into {name}[/bold] ({builder.style.value})")

        overrides = {}
        if save_interval is not None:
            overrides["save_interval"] = save_interval

        try:
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeRemainingColumn(),
                console=console,
            ) as bar:
                task_id = bar.add_task(f"[cyan]{name}", total=len(words))

                def on_progress(progress: BatchProgress) -> None:
                    bar.update(task_id, completed=progress.current_index)

                result = await builder.process_words(
                    words,
                    control=control,
                    resume=not fresh,
                    on_progress=on_progress,
                    **overrides,
                )
        finally:
            await builder.close()

        console.print("\n" + "=" * 60)
        console.print("[bold]Run Summary[/bold]")
        console.print("=" * 60)
        console.print(f"Outcome: {result.outcome.value}")
        console.print(f"Processed: {result.words_processed:,}")
        console.print(f"Skipped: {result.skipped:,}")
        console.print(f"Errors: {len(result.errors):,}")
        console.print(f"Vocabulary: {len(builder.vocabulary):,} words")

        if result.errors:
            console.print("\n[red]Failed words:[/red]")
            for error in result.errors[:10]:
                console.print(f"  - {error.word}: {escape(error.message)}")

        if result.recommendation is not None:
            rec = result.recommendation
            console.print(f"Consistency: {rec.current_consistency:.1f}%")
            if rec.should_reconstruct:
                console.print("[yellow]Reconstruction recommended:[/yellow]")
                for reason in rec.reasons:
                    console.print(f"  - {reason}")
        else:
            console.print("[yellow]Run stopped; re-run the same command to resume.[/yellow]")
        console.print("=" * 60 + "\n")

    try:
        asyncio.run(_process())
    except CheckpointLockedError as e:
        raise click.ClickException(e.message)


@cli.command()
@click.argument('name')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def analyze(name, output_dir):
    """Report phonetic consistency of the language NAME."""
    builder = open_language(name, None, output_dir, False, False, None)
    rec = builder.recommend()
    report = rec.report

    console.print(f"[bold]{name}[/bold]: {len(builder.vocabulary):,} words")
    console.print(f"Consistency: {report.consistency_score:.1f}%")
    console.print(f"Conflicts: {report.conflict_count} ({', '.join(report.conflicted_characters) or 'none'})")
    if rec.should_reconstruct:
        console.print("[yellow]Reconstruction recommended:[/yellow]")
        for reason in rec.reasons:
            console.print(f"  - {reason}")


@cli.command()
@click.argument('name')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
@click.option('--plain', is_flag=True, help='Plain-character pronunciations')
@click.option('--seed', type=int, default=None, help='Variation seed')
@click.option('--show', default=10, help='Number of changes to list')
def reconstruct(name, output_dir, plain, seed, show):
    """Reapply the rules of NAME to its whole vocabulary."""

    async def _reconstruct():
        builder = open_language(name, None, output_dir, False, plain, seed)
        with builder.checkpoints:
            before = builder.analyze().consistency_score
            result = builder.reconstruct(before)
            if result.committed:
                await builder.flush({"reconstructedWords": result.reconstructed_words})

        console.print(f"Reconstructed: {result.reconstructed_words:,}")
        console.print(f"Changed: {result.changed_words:,}")
        console.print(f"Consistency: {result.before:.1f}% -> {result.after:.1f}% ({result.improvement:+.1f})")
        for change in result.changes[:show]:
            console.print(f"  {change.source}: {change.old_constructed} -> {change.new_constructed}")

    try:
        asyncio.run(_reconstruct())
    except CheckpointLockedError as e:
        raise click.ClickException(e.message)


@cli.command()
@click.argument('name')
@click.argument('word')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def lookup(name, word, output_dir):
    """Translate WORD in either direction."""
    builder = open_language(name, None, output_dir, False, False, None)
    vocabulary = builder.vocabulary

    constructed = builder.translate(word)
    if constructed is not None:
        entry = vocabulary.get(word.strip().lower())
        click.echo(f"{word} -> {constructed} {entry.pronunciation}")
    else:
        entry = builder.lookup(word)
        if entry is None:
            raise click.ClickException(f"'{word}' not found in {name}")
        constructed = entry.constructed
        click.echo(f"{word} -> {entry.source} ({entry.part_of_speech})")

    for definition in vocabulary.constructed_definitions(constructed) or []:
        click.echo(f"  {name}: {definition}")


@cli.command()
@click.argument('name')
@click.argument('term')
@click.option('--direction', type=click.Choice([d.value for d in SearchDirection]), default='both', help='Side to search')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def search(name, term, direction, output_dir):
    """List words of NAME containing TERM."""
    builder = open_language(name, None, output_dir, False, False, None)
    matches = builder.vocabulary.search(term, direction)
    if not matches:
        raise click.ClickException(f"No words in {name} contain '{term}'")

    for match in matches:
        click.echo(f"{match['source']} -> {match['constructed']} [{match['match']}]")


@cli.command(name='list')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def list_languages(output_dir):
    """List languages flushed into the dictionary directory."""
    directory = Path(output_dir) if output_dir else get_settings().output_dir
    languages = DictionaryWriter(directory).languages()
    if not languages:
        console.print("No languages found.")
        return

    for metadata in languages:
        console.print(f"[bold]{escape(metadata['language'])}[/bold]")
        console.print(f"  Created: {metadata.get('createdAt', 'unknown')}")
        console.print(f"  Words: {metadata['vocabularySize']:,}")
        console.print(f"  Style: {metadata.get('style') or 'unknown'}")


@cli.command()
@click.argument('name')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def info(name, output_dir):
    """Show size, style and generation stats of NAME."""
    directory = Path(output_dir) if output_dir else get_settings().output_dir
    try:
        metadata = DictionaryWriter(directory).read(name, "metadata")
    except DictionaryIOError:
        raise click.ClickException(f"Language '{name}' not found in {directory}")

    phonetics = metadata.get("phoneticSystem", {})
    console.print(f"[bold]{escape(metadata['language'])}[/bold]")
    console.print(f"Created: {metadata.get('createdAt', 'unknown')}")
    console.print(f"Updated: {metadata.get('updatedAt', 'unknown')}")
    console.print(f"Vocabulary Size: {metadata['vocabularySize']:,} words")
    console.print(f"Style: {metadata.get('style') or 'unknown'}")
    console.print(f"Vowels: {', '.join(phonetics.get('vowelInventory', [])) or 'N/A'}")
    console.print(f"Consonants: {', '.join(phonetics.get('consonantInventory', [])) or 'N/A'}")

    stats = metadata.get("generationStats") or {}
    if stats:
        console.print("Generation Stats:")
        for key, value in stats.items():
            console.print(f"  {key}: {value}")


@cli.group()
def batch():
    """Inspect or clear checkpoints of interrupted runs."""
    pass


@batch.command()
@click.argument('name')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
def status(name, output_dir):
    """Show the checkpoint and lock of NAME."""
    store = checkpoint_store(name, output_dir)
    try:
        checkpoint = asyncio.run(store.load())
        pid = store.holder_pid()
        stale = store.lock_is_stale()
    except CheckpointIOError as e:
        raise click.ClickException(e.message)

    if pid is None and not store.lock_path.exists():
        console.print("Lock: free")
    elif stale:
        console.print(f"Lock: stale (pid {pid} is not running)")
    else:
        console.print(f"Lock: held by pid {pid if pid is not None else 'unknown'}")

    if checkpoint is None:
        console.print("Checkpoint: none")
        return
    console.print(f"Checkpoint: {checkpoint.current_index}/{checkpoint.total_words} words")
    console.print(f"Processed: {len(checkpoint.processed_words):,} words")
    console.print(f"Last update: {checkpoint.timestamp.isoformat()}")


@batch.command()
@click.argument('name')
@click.option('--output-dir', type=click.Path(file_okay=False), default=None, help='Dictionary directory')
@click.option('--force', is_flag=True, help='Remove the lock even if its process is running')
def clean(name, output_dir, force):
    """Remove the checkpoint and lock files of NAME."""
    try:
        removed = checkpoint_store(name, output_dir).clean(force=force)
    except CheckpointIOError as e:
        raise click.ClickException(e.message)
    console.print(f"Removed {len(removed)} batch file(s).")


@cli.command()
def probe():
    """Check that the enrichment service is reachable."""

    async def _probe():
        client = create_enrichment(get_settings().model_copy(update={"use_enrichment": True}))
        async with client:
            return await client.test_connection()

    if asyncio.run(_probe()):
        click.echo(f"Enrichment service reachable at {get_settings().ollama_url}")
    else:
        raise click.ClickException(f"Enrichment service unreachable at {get_settings().ollama_url}")


if __name__ == '__main__':
    cli()
