import logging
import signal
import threading
from pathlib import Path

import click

from . import __version__
from .config import OutputMode, create_config_file, load_config
from .errors import TypeGenError, format_error
from .logging_config import configure_logging
from .pipeline import GenerationResult, generate_types
from .watcher import RunOutcome, watch_with_generation
from .writer import SafeWriter


_CONFIG_OPTIONS = [
    click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, resolve_path=True)),
    click.option("--models-path", "-m", default=None, type=click.Path(file_okay=False), help="Directory scanned for model files"),
    click.option("--output", "-o", "output_path", default=None, type=click.Path(), help="Output .ts file or directory"),
    click.option("--mode", default=None, type=click.Choice([m.value for m in OutputMode])),
    click.option(
        "--resolve-references/--no-resolve-references",
        default=None,
        help="Type reference fields as `string | Target` instead of `string`",
    ),
    click.option("--debug", is_flag=True, default=False, help="Verbose logging and tracebacks"),
]


def config_options(func):
    """Options shared by every command that loads a configuration."""
    for option in reversed(_CONFIG_OPTIONS):
        func = option(func)
    return func


def _load(config_path, models_path, output_path, mode, resolve_references, debug):
    overrides = {
        "modelsPath": models_path,
        "outputPath": output_path,
        "outputMode": mode,
        "resolveReferences": resolve_references,
    }
    try:
        return load_config(config_path, overrides=overrides)
    except TypeGenError as e:
        _echo_error(e, debug)
        raise click.exceptions.Exit(1) from e


def _echo_error(error: BaseException, debug: bool, fg: str = "red") -> None:
    click.secho(format_error(error, verbose=debug), fg=fg, err=True)


def _failure_line(error: TypeGenError) -> str:
    details = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"  {error} ({details})" if details else f"  {error}"


def install_stop_handler(stop_requested: threading.Event):
    """Make SIGTERM request a clean stop, like Ctrl+C. Returns the previous handler."""

    def request_stop(signum, frame):
        stop_requested.set()

    return signal.signal(signal.SIGTERM, request_stop)


def _echo_result(result: GenerationResult, debug: bool) -> None:
    if result.error is not None:
        # An empty models directory is not a crash
        _echo_error(result.error, debug, fg="yellow" if result.nothing_to_generate else "red")
        return

    for failure in result.failures:
        click.secho(_failure_line(failure), fg="yellow", err=True)

    written = result.write_result.successful if result.write_result else 0
    color = "green" if result.success else "yellow"
    click.secho(f"Generated {len(result.models)} model(s) into {written} file(s)", fg=color)
    for path in result.files:
        click.echo(f"  {path}")


@click.group()
@click.version_option(__version__, prog_name="odm_schema_to_ts")
def odm_schema_to_ts():
    """Generate TypeScript interfaces from ODM model schemas."""


@odm_schema_to_ts.command()
@config_options
def generate(config_path, models_path, output_path, mode, resolve_references, debug):
    """Generate types once."""
    configure_logging(debug=debug, default=logging.INFO)
    config = _load(config_path, models_path, output_path, mode, resolve_references, debug)

    result = generate_types(config)
    _echo_result(result, debug)
    if not result.success:
        raise click.exceptions.Exit(1)


@odm_schema_to_ts.command()
@config_options
def watch(config_path, models_path, output_path, mode, resolve_references, debug):
    """Generate types, then regenerate whenever a model file changes."""
    configure_logging(debug=debug, default=logging.INFO)
    config = _load(config_path, models_path, output_path, mode, resolve_references, debug)

    def on_result(outcome: RunOutcome) -> None:
        if outcome.error is not None:
            _echo_error(outcome.error, debug)
        else:
            _echo_result(outcome.result, debug)

    stop_requested = threading.Event()
    previous_handler = install_stop_handler(stop_requested)
    try:
        watcher = watch_with_generation(config, on_result)
        click.secho(f"Watching {config.models_path} (Ctrl+C to stop)", fg="cyan")
        try:
            while watcher.running and not stop_requested.is_set():
                watcher.join(0.5)
        except KeyboardInterrupt:
            stop_requested.set()
        finally:
            if stop_requested.is_set():
                click.echo("Stopping...")
            # Drains an in-flight run before the watch handle is released
            watcher.stop()
    finally:
        signal.signal(signal.SIGTERM, previous_handler if previous_handler is not None else signal.SIG_DFL)


@odm_schema_to_ts.command()
@click.option("--models-path", "-m", default=None, help="Directory scanned for model files")
@click.option("--output", "-o", "output_path", default=None, help="Output .ts file or directory")
@click.option("--mode", default=None, type=click.Choice([m.value for m in OutputMode]))
def init(models_path, output_path, mode):
    """Write a default config file in the current directory."""
    custom = {"modelsPath": models_path, "outputPath": output_path, "outputMode": mode}
    try:
        path = create_config_file(Path.cwd(), custom)
    except TypeGenError as e:
        _echo_error(e, debug=False)
        raise click.exceptions.Exit(1) from e
    click.secho(f"Created {path.name}", fg="green")


@odm_schema_to_ts.command()
@config_options
@click.option("--dry-run", is_flag=True, default=False, help="List the files without deleting them")
def clean(config_path, models_path, output_path, mode, resolve_references, debug, dry_run):
    """Remove generated .ts files from the output location."""
    configure_logging(debug=debug)
    config = _load(config_path, models_path, output_path, mode, resolve_references, debug)

    output_dir = config.output_path.parent if config.output_path.suffix == ".ts" else config.output_path
    result = SafeWriter().clean(output_dir, dry_run=dry_run)

    verb = "Would remove" if dry_run else "Removed"
    click.secho(f"{verb} {len(result.files)} generated file(s)", fg="green")
    for path in result.files:
        click.echo(f"  {path}")


def main():
    odm_schema_to_ts()


if __name__ == "__main__":
    main()
