#!/usr/bin/env python3
"""
Takeout TimeFix CLI

Restores capture dates for an extracted photo takeout, merges duplicate
exports and moves every file into a dated folder layout.
"""

import sys
import logging
import threading
import click
from pathlib import Path
from colorama import init, Fore, Style

from takeout_timefix import (
    Config,
    OrganizationMode,
    PipelineOrchestrator,
    ProcessingConfig,
    generate_summary_report,
)
from takeout_timefix.models import describe_accuracy
from takeout_timefix.organizer import OrganizationPlanner
from takeout_timefix.resolver import TimestampResolver
from takeout_timefix.scanner import MediaScanner

# Initialize colorama for cross-platform colored output
init()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Will be reconfigured once the output directory is known
_file_handler = None


def setup_logging(level: str = 'INFO', log_dir: Path = None):
    """Set up logging configuration."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    if log_dir:
        _setup_file_logging(log_dir, formatter, root_logger)

    # exifread logs every unknown tag at DEBUG/WARNING
    logging.getLogger('exifread').setLevel(logging.ERROR)


def _setup_file_logging(log_dir: Path, formatter: logging.Formatter, root_logger: logging.Logger,
                        log_name: str = 'timefix'):
    """Add file handler to root logger."""
    global _file_handler
    log_dir.mkdir(parents=True, exist_ok=True)

    if _file_handler is not None:
        root_logger.removeHandler(_file_handler)

    _file_handler = logging.FileHandler(log_dir / f'{log_name}.log')
    _file_handler.setFormatter(formatter)
    root_logger.addHandler(_file_handler)


def print_header(title: str):
    """Print a formatted header."""
    click.echo(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    click.echo(f"{Fore.CYAN}{title.center(60)}{Style.RESET_ALL}")
    click.echo(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}\n")
    sys.stdout.flush()

def print_success(message: str):
    """Print success message."""
    click.echo(f"{Fore.GREEN}OK: {message}{Style.RESET_ALL}")
    sys.stdout.flush()

def print_warning(message: str):
    """Print warning message."""
    click.echo(f"{Fore.YELLOW}WARN: {message}{Style.RESET_ALL}")
    sys.stdout.flush()

def print_error(message: str):
    """Print error message."""
    click.echo(f"{Fore.RED}ERROR: {message}{Style.RESET_ALL}")
    sys.stdout.flush()

def print_info(message: str):
    """Print info message."""
    click.echo(f"{Fore.BLUE}INFO: {message}{Style.RESET_ALL}")
    sys.stdout.flush()


def apply_overrides(config: Config, input_dir, output_dir, mode, preserve_names, jobs):
    """Command-line options take precedence over the configuration file."""
    if input_dir:
        config.set('timefix.input_directory', input_dir)
    if output_dir:
        config.set('timefix.output_directory', output_dir)
    if mode:
        config.set('timefix.organization.mode', mode)
    if preserve_names is not None:
        config.set('timefix.organization.preserve_original_filename', preserve_names)
    if jobs:
        config.set('timefix.process.parallel_jobs', jobs)


def load_processing_config(config: Config) -> ProcessingConfig:
    errors = config.validate_config()
    if errors:
        print_error("Configuration validation failed:")
        for error in errors:
            click.echo(f"  - {error}")
        sys.exit(1)
    return ProcessingConfig.from_config(config)


def directory_options(func):
    func = click.option('--jobs', '-j', type=click.IntRange(1, 32),
                        help='Worker threads for timestamp extraction and hashing')(func)
    func = click.option('--preserve-names/--rename', default=None,
                        help='Keep original filenames instead of YYYYMMDD_HHMMSS names')(func)
    func = click.option('--mode', '-m', type=click.Choice([m.value for m in OrganizationMode]),
                        help='Output layout (override config)')(func)
    func = click.option('--output', '-o', 'output_dir', type=click.Path(file_okay=False),
                        help='Output directory (override config)')(func)
    func = click.option('--input', '-i', 'input_dir', type=click.Path(exists=True, file_okay=False),
                        help='Extracted takeout directory (override config)')(func)
    return func


@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level (override config)')
@click.pass_context
def cli(ctx, config, log_level):
    """Takeout TimeFix - restore dates and organize exported photos."""

    try:
        config_obj = Config(config)
    except Exception as e:
        setup_logging(log_level or 'INFO')
        print_error(f"Failed to load configuration: {e}")
        sys.exit(1)

    setup_logging(log_level or config_obj.get_log_level())

    ctx.ensure_object(dict)
    ctx.obj['config'] = config_obj


@cli.command()
@directory_options
@click.option('--progress', is_flag=True, help='Show progress bars for each phase')
@click.option('--guess-from-folder', is_flag=True,
              help='Use a year in the folder name as a last resort')
@click.pass_context
def run(ctx, input_dir, output_dir, mode, preserve_names, jobs, progress, guess_from_folder):
    """Restore timestamps, merge duplicates and organize files."""

    print_header("TAKEOUT TIMEFIX")

    config = ctx.obj['config']
    apply_overrides(config, input_dir, output_dir, mode, preserve_names, jobs)
    if progress:
        config.set('timefix.process.show_progress', True)
    if guess_from_folder:
        config.set('timefix.extraction.guess_from_folder_name', True)

    processing_config = load_processing_config(config)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    _setup_file_logging(processing_config.output_directory / "logs", formatter, logging.getLogger())

    print_info(f"Input: {processing_config.input_directory}")
    print_info(f"Output: {processing_config.output_directory} ({processing_config.organization_mode.value})")

    def progress_sink(percentage, message):
        click.echo(f"\r[{percentage:3d}%] {message}".ljust(70), nl=False)
        sys.stdout.flush()

    orchestrator = PipelineOrchestrator(
        processing_config,
        progress_sink=None if processing_config.show_progress else progress_sink,
    )

    # The pipeline runs on a worker thread so Ctrl+C can request a clean stop
    outcome = []
    worker = threading.Thread(target=lambda: outcome.append(orchestrator.run()), daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        click.echo()
        print_warning("Cancelling after the current file...")
        orchestrator.cancel()
        worker.join()

    click.echo()
    if not outcome:
        print_error("Processing stopped unexpectedly, see the log for details")
        sys.exit(1)

    result = outcome[0]
    click.echo("\n" + generate_summary_report(result))
    sys.stdout.flush()

    if not result.success:
        print_error(result.error_message or "Processing failed")
        sys.exit(1)

    if result.errors:
        print_warning(f"Completed with {len(result.errors)} errors")
    else:
        print_success(f"Organized {result.organized_files:,} files")


@cli.command()
@directory_options
@click.option('--limit', default=20, show_default=True, help='Number of planned paths to show')
@click.pass_context
def check(ctx, input_dir, output_dir, mode, preserve_names, jobs, limit):
    """Show where files would go, without moving anything."""

    print_header("TAKEOUT TIMEFIX CHECK")

    config = ctx.obj['config']
    apply_overrides(config, input_dir, output_dir, mode, preserve_names, jobs)
    processing_config = load_processing_config(config)

    try:
        scanner = MediaScanner(processing_config.input_directory, processing_config.extensions)
        discovered = scanner.discover()
        if not discovered:
            print_warning("No media files found")
            return

        resolver = TimestampResolver(processing_config)
        items = [resolver.resolve_item(found) for found in discovered]

        sources = {}
        for item in items:
            label = describe_accuracy(item.accuracy)
            sources[label] = sources.get(label, 0) + 1

        print_success(f"Found {len(items):,} media files")
        for label, count in sorted(sources.items(), key=lambda kv: -kv[1]):
            click.echo(f"  - {label}: {count:,}")

        planner = OrganizationPlanner(
            processing_config.output_directory,
            processing_config.organization_mode,
            processing_config.preserve_original_filename,
        )
        preview = planner.preview(items)
        click.echo(f"\nPlanned layout ({len(preview):,} distinct paths):")
        for relative in preview[:limit]:
            click.echo(f"  {relative}")
        if len(preview) > limit:
            click.echo(f"  ... and {len(preview) - limit:,} more")
        sys.stdout.flush()

    except Exception as e:
        print_error(f"Check failed: {e}")
        sys.exit(1)


if __name__ == '__main__':
    cli()
