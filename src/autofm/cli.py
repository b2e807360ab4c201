"""Command line interface for AutoFM."""

from __future__ import annotations

import difflib
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from autofm.backup import BackupRepository
from autofm.config import AutoFMConfig, ConfigError, ConfigManager, resolve_with_precedence
from autofm.errors import AutoFMError, BackupError, InvalidTemplateError, WatchStartError
from autofm.frontmatter import OperationResult, read_document
from autofm.log_setup import LOG_DIRNAME, configure_logging
from autofm.templates import DEFAULT_TEMPLATE, TemplateManager
from autofm.watch import MarkdownScanner, WatchContext, WatchService

console = Console()

_DIR_OPTION = click.option(
    "-d",
    "--dir",
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory containing the markdown files.",
)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Target root path relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(
    root: Path,
    *,
    json_output: bool = False,
    include_env: bool = True,
) -> tuple[ConfigManager, AutoFMConfig]:
    """Load configuration for ``root`` or exit with a CLI error."""
    manager = ConfigManager(root)
    try:
        config = manager.load(include_env=include_env)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise
    return manager, config


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Args:
        target: Mapping to mutate in-place.
        path: Sequence of keys representing the nested location.
        value: Value to assign at the nested location.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """

    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _display_path(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _emit_result(result: OperationResult, *, root: Path, json_output: bool) -> None:
    """Render a single operation result as it happens."""
    if json_output:
        console.print_json(data=result.to_dict())
        return
    name = _display_path(result.path, root)
    if not result.success:
        console.print(f"[red]✗ {name}: {result.message}[/red]")
    elif result.changed:
        console.print(f"[green]✓ {name} ({result.action.replace('_', ' ')})[/green]")


def _results_table(results: list[OperationResult], root: Path) -> Table:
    table = Table(title="Processed Files")
    table.add_column("File", style="cyan")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Message", overflow="fold")
    for result in results:
        if not result.success:
            status = "[red]failed[/red]"
        elif result.changed:
            status = "[green]written[/green]"
        else:
            status = "[yellow]unchanged[/yellow]"
        table.add_row(_display_path(result.path, root), result.action, status, result.message)
    return table


def _flatten_category(value: Any) -> str:
    if isinstance(value, list):
        return " / ".join(str(item) for item in value)
    return str(value)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="autofm")
def cli() -> None:
    """AutoFM keeps markdown front matter in sync with where files live."""


@cli.command()
@_DIR_OPTION
@click.option("-i", "--init", "init", is_flag=True, help="Process existing files once, then exit.")
@click.option("-f", "--force", is_flag=True, help="Overwrite title, categories, and tags.")
@click.option("-c", "--ct", "ct", is_flag=True, help="Regenerate categories and tags once, then exit.")
@click.option("-b", "--backup", is_flag=True, help="Back up files before rewriting them.")
@click.option(
    "-t",
    "--template",
    "template_name",
    default=DEFAULT_TEMPLATE,
    show_default=True,
    help="Template used to generate front matter.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON lines describing each operation.")
def watch(
    directory: Path,
    init: bool,
    force: bool,
    ct: bool,
    backup: bool,
    template_name: str,
    verbose: bool,
    json_output: bool,
) -> None:
    """Watch a directory and keep front matter up to date.

    Args:
        directory: Root directory to monitor.
        init: When True, process existing files once and exit.
        force: When True, overwrite title, categories, and tags.
        ct: When True, regenerate categories and tags once and exit.
        backup: When True, copy files into the backup directory before writing.
        template_name: Template applied when generating metadata.
        verbose: When True, log at DEBUG on the console.
        json_output: When True, emit JSON payloads instead of text.

    Raises:
        click.ClickException: If configuration cannot be loaded or watching fails to start.
    """

    root = directory.expanduser().resolve()
    _, config = _load_config(root, json_output=json_output)
    configure_logging(config.logging, verbose=verbose, log_dir=root / LOG_DIRNAME)

    context = WatchContext.build(
        root,
        config,
        init=init,
        force=force,
        ct=ct,
        backup=backup,
        template_name=template_name,
    )
    service = WatchService(context)

    try:
        service.start()
    except WatchStartError as exc:
        _handle_cli_error(str(exc), code=exc.code, json_output=json_output, original=exc)
        return

    if not json_output:
        if context.one_shot:
            console.print(f"[cyan]Processing {root} once.[/cyan]")
        else:
            console.print(f"[cyan]Watching {root}. Press Ctrl+C to stop.[/cyan]")

    try:
        service.run(lambda result: _emit_result(result, root=root, json_output=json_output))
    except KeyboardInterrupt:
        service.stop()
        if not json_output:
            console.print("[yellow]Watch stopped by user request.[/yellow]")

    if json_output:
        console.print_json(data={"summary": service.counts, "root": root.as_posix()})
    else:
        console.print(_format_summary_line("Watch", root, service.counts))


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(dir_okay=False, path_type=Path))
@_DIR_OPTION
@click.option("-f", "--force", is_flag=True, help="Overwrite title, categories, and tags.")
@click.option("-c", "--ct", "ct", is_flag=True, help="Regenerate categories and tags.")
@click.option("-b", "--backup", is_flag=True, help="Back up files before rewriting them.")
@click.option(
    "-t",
    "--template",
    "template_name",
    default=DEFAULT_TEMPLATE,
    show_default=True,
    help="Template used to generate front matter.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing processed files.")
@click.pass_context
def process(
    ctx: click.Context,
    files: tuple[Path, ...],
    directory: Path,
    force: bool,
    ct: bool,
    backup: bool,
    template_name: str,
    verbose: bool,
    json_output: bool,
) -> None:
    """Update front matter for specific FILES.

    Args:
        ctx: Click context used to set the exit status.
        files: Files to process.
        directory: Root used to derive categories and load configuration.
        force: When True, overwrite title, categories, and tags.
        ct: When True, regenerate categories and tags.
        backup: When True, copy files into the backup directory before writing.
        template_name: Template applied when generating metadata.
        verbose: When True, log at DEBUG on the console.
        json_output: When True, emit JSON payloads instead of text.
    """

    root = directory.expanduser().resolve()
    _, config = _load_config(root, json_output=json_output)
    configure_logging(config.logging, verbose=verbose, log_dir=root / LOG_DIRNAME)

    context = WatchContext.build(
        root,
        config,
        force=force,
        ct=ct,
        backup=backup,
        template_name=template_name,
    )
    service = WatchService(context)
    results = service.process_files([path.expanduser().resolve() for path in files])
    counts = service.counts

    if json_output:
        console.print_json(
            data={
                "root": root.as_posix(),
                "results": [result.to_dict() for result in results],
                "summary": counts,
            }
        )
    else:
        console.print(_results_table(results, root))
        console.print(_format_summary_line("Process", root, counts))

    if counts["failed"]:
        ctx.exit(1)


@cli.command()
@_DIR_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(directory: Path, json_output: bool) -> None:
    """Show the effective configuration for a directory.

    Args:
        directory: Root directory to inspect.
        json_output: When True, emit JSON instead of a table.
    """

    root = directory.expanduser().resolve()
    manager, config = _load_config(root, json_output=json_output)
    scanner = MarkdownScanner.from_config(config)
    file_count = sum(1 for _ in scanner.scan(root))
    source = manager.source_path

    payload: dict[str, Any] = {
        "root": root.as_posix(),
        "config_file": source.as_posix() if source else None,
        "markdown_files": file_count,
        "date_format": config.date_format,
        "timezone": config.timezone,
        "category_mode": config.category_mode,
        "protected_fields": list(config.protected_fields),
        "backup_enabled": config.backup.enabled,
        "templates": list(config.templates),
    }

    if json_output:
        console.print_json(data=payload)
        return

    table = Table(title="AutoFM Status", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Folder", payload["root"])
    table.add_row("Config file", payload["config_file"] or "(defaults)")
    table.add_row("Markdown files", str(file_count))
    table.add_row("Date format", config.date_format)
    table.add_row("Timezone", config.timezone)
    table.add_row("Category mode", config.category_mode)
    table.add_row("Protected fields", ", ".join(config.protected_fields))
    table.add_row("Backup enabled", "yes" if config.backup.enabled else "no")
    table.add_row("Templates", ", ".join(config.templates))
    console.print(table)


@cli.command()
@_DIR_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit the report as JSON.")
def report(directory: Path, json_output: bool) -> None:
    """Summarize category coverage across markdown files.

    Args:
        directory: Root directory to scan.
        json_output: When True, emit JSON instead of tables.
    """

    root = directory.expanduser().resolve()
    _, config = _load_config(root, json_output=json_output)
    scanner = MarkdownScanner.from_config(config)

    counts: Counter[str] = Counter()
    uncategorized: list[str] = []
    missing: list[str] = []
    unreadable: list[str] = []
    total = 0
    for path in scanner.scan(root):
        total += 1
        name = _display_path(path, root)
        try:
            document = read_document(path)
        except AutoFMError:
            unreadable.append(name)
            continue
        if document.is_empty:
            missing.append(name)
            continue
        categories = document.record.get("categories") if document.record else None
        if isinstance(categories, str):
            categories = [categories]
        if not categories:
            uncategorized.append(name)
            continue
        for item in categories:
            counts[_flatten_category(item)] += 1

    if json_output:
        console.print_json(
            data={
                "root": root.as_posix(),
                "files": total,
                "categories": dict(counts.most_common()),
                "uncategorized": uncategorized,
                "missing_front_matter": missing,
                "unreadable": unreadable,
            }
        )
        return

    table = Table(title="Category Coverage")
    table.add_column("Category", style="cyan")
    table.add_column("Files", justify="right")
    for category, count in counts.most_common():
        table.add_row(category, str(count))
    console.print(table)

    if uncategorized:
        console.print("[yellow]Uncategorized files:[/yellow]")
        for name in uncategorized:
            console.print(f"  - {name}")
    if missing:
        console.print("[yellow]Files without front matter:[/yellow]")
        for name in missing:
            console.print(f"  - {name}")
    if unreadable:
        console.print("[red]Unreadable files:[/red]")
        for name in unreadable:
            console.print(f"  - {name}")

    console.print(
        _format_summary_line(
            "Report",
            root,
            {
                "files": total,
                "categories": len(counts),
                "uncategorized": len(uncategorized),
                "missing": len(missing),
            },
        )
    )


@cli.group()
def config() -> None:
    """Manage AutoFM configuration files and overrides."""


@config.command("view")
@_DIR_OPTION
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(directory: Path, no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        directory: Directory whose configuration is displayed.
        no_env: If True, ignore environment-derived overrides.
    """
    _, config = _load_config(directory.expanduser().resolve(), include_env=not no_env)
    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False, allow_unicode=True)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
@_DIR_OPTION
def config_set(key: str, value: str, directory: Path) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.
        directory: Directory whose configuration file is updated.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager(directory.expanduser().resolve())

    try:
        before = manager.read_text().splitlines()
        file_data = manager.load_file_overrides()
    except (ConfigError, OSError) as exc:
        raise click.ClickException(str(exc)) from exc

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'backup.enabled'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=AutoFMConfig(), file_overrides=file_data)
        manager.save(file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = list(
        difflib.unified_diff(
            [line for line in before if not line.startswith("# Last updated:")],
            [line for line in after if not line.startswith("# Last updated:")],
            fromfile="autofm-config (before)",
            tofile="autofm-config (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("validate")
@_DIR_OPTION
def config_validate(directory: Path) -> None:
    """Check the configuration file and every template definition.

    Raises:
        click.ClickException: If the configuration or a template is invalid.
    """
    _, config = _load_config(directory.expanduser().resolve())
    problems = TemplateManager(config).validate()
    if problems:
        for problem in problems:
            console.print(f"[red]- {problem}[/red]")
        raise click.ClickException(f"{len(problems)} template problem(s) found.")
    console.print("[green]Configuration is valid.[/green]")


@cli.group()
def templates() -> None:
    """List, inspect, and edit front matter templates."""


@templates.command("list")
@_DIR_OPTION
def templates_list(directory: Path) -> None:
    """List configured templates and their fields."""
    manager, config = _load_config(directory.expanduser().resolve())
    template_manager = TemplateManager(config, manager)
    table = Table(title="Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Fields")
    for name in template_manager.list_templates():
        fields = ", ".join(config.templates[name])
        table.add_row(name, fields or "-")
    console.print(table)


@templates.command("show")
@click.argument("name")
@_DIR_OPTION
def templates_show(name: str, directory: Path) -> None:
    """Print the definition of template NAME.

    Raises:
        click.ClickException: If the template does not exist.
    """
    _, config = _load_config(directory.expanduser().resolve())
    if name not in config.templates:
        raise click.ClickException(f"Template '{name}' not found.")
    yaml_text = yaml.safe_dump({name: config.templates[name]}, sort_keys=False, allow_unicode=True)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@templates.command("create")
@click.argument("name")
@click.option(
    "--file",
    "source_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file containing the template mapping.",
)
@click.option("--base", help="Existing template to start from.")
@click.option("--field", "fields", multiple=True, help="Field assignment as KEY=VALUE (YAML value).")
@_DIR_OPTION
def templates_create(
    name: str,
    source_file: Optional[Path],
    base: Optional[str],
    fields: tuple[str, ...],
    directory: Path,
) -> None:
    """Create or replace template NAME and save it to the configuration file.

    Args:
        name: Template name.
        source_file: Optional YAML file holding the template mapping.
        base: Optional template to copy before applying field assignments.
        fields: KEY=VALUE assignments applied last.
        directory: Directory whose configuration file is updated.

    Raises:
        click.ClickException: If the definition is invalid or cannot be saved.
    """
    manager, config = _load_config(directory.expanduser().resolve())
    template: dict[str, Any] = {}

    if base is not None:
        if base not in config.templates:
            raise click.ClickException(f"Base template '{base}' not found.")
        template.update(config.templates[base])

    if source_file is not None:
        try:
            loaded = yaml.safe_load(source_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise click.ClickException(f"Unable to read template file: {exc}") from exc
        if not isinstance(loaded, dict):
            raise click.ClickException("Template file must contain a mapping.")
        template.update(loaded)

    for assignment in fields:
        key, separator, raw = assignment.partition("=")
        if not separator or not key.strip():
            raise click.ClickException(f"Invalid --field '{assignment}'; expected KEY=VALUE.")
        try:
            template[key.strip()] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError as exc:
            raise click.ClickException(f"Unable to parse value for '{key}': {exc}") from exc

    if not template:
        raise click.ClickException("Provide --file, --base, or at least one --field.")

    try:
        TemplateManager(config, manager).create_template(name, template)
    except (InvalidTemplateError, ConfigError) as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Template '{name}' saved to {manager.config_path}.[/green]")


@templates.command("delete")
@click.argument("name")
@_DIR_OPTION
def templates_delete(name: str, directory: Path) -> None:
    """Delete user template NAME.

    Raises:
        click.ClickException: If the template is built in or does not exist.
    """
    manager, config = _load_config(directory.expanduser().resolve())
    template_manager = TemplateManager(config, manager)
    if name not in config.templates:
        raise click.ClickException(f"Template '{name}' not found.")
    try:
        deleted = template_manager.delete_template(name)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    if not deleted:
        raise click.ClickException(f"Template '{name}' is built in and cannot be deleted.")
    console.print(f"[green]Template '{name}' deleted.[/green]")


@cli.group()
def backups() -> None:
    """Inspect and restore backup copies."""


def _backup_repository(directory: Path) -> BackupRepository:
    root = directory.expanduser().resolve()
    _, config = _load_config(root)
    return BackupRepository(root, config.backup)


@backups.command("list")
@click.argument("file", required=False, type=click.Path(dir_okay=False, path_type=Path))
@_DIR_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit backups as JSON.")
def backups_list(file: Optional[Path], directory: Path, json_output: bool) -> None:
    """List backups, newest first, optionally only those of FILE."""
    repository = _backup_repository(directory)
    try:
        records = repository.list_backups(file)
    except BackupError as exc:
        _handle_cli_error(str(exc), code=exc.code, json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data={"backups": [record.model_dump(mode="json") for record in records]})
        return
    if not records:
        console.print("[yellow]No backups found.[/yellow]")
        return

    table = Table(title="Backups")
    table.add_column("Created", style="cyan")
    table.add_column("Original")
    table.add_column("Backup")
    table.add_column("Size", justify="right")
    for record in records:
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.original_path,
            Path(record.backup_path).name,
            str(record.size),
        )
    console.print(table)


@backups.command("restore")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--target",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Restore to this path instead.",
)
@_DIR_OPTION
def backups_restore(backup_file: Path, target: Optional[Path], directory: Path) -> None:
    """Restore BACKUP_FILE over its original file.

    Raises:
        click.ClickException: If the backup cannot be restored.
    """
    repository = _backup_repository(directory)
    try:
        restored = repository.restore(backup_file, target)
    except BackupError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Restored {restored}.[/green]")


@backups.command("cleanup")
@_DIR_OPTION
def backups_cleanup(directory: Path) -> None:
    """Delete backups beyond the configured retention limit."""
    repository = _backup_repository(directory)
    try:
        removed = repository.cleanup()
    except BackupError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Removed {removed} old backup(s).[/green]")


@backups.command("stats")
@_DIR_OPTION
@click.option("--json", "json_output", is_flag=True, help="Emit statistics as JSON.")
def backups_stats(directory: Path, json_output: bool) -> None:
    """Show how many backups exist and how much space they use."""
    repository = _backup_repository(directory)
    try:
        stats = repository.stats()
    except BackupError as exc:
        _handle_cli_error(str(exc), code=exc.code, json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data=stats)
        return
    table = Table(title="Backup Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Directory", stats["directory"])
    table.add_row("Enabled", "yes" if stats["enabled"] else "no")
    table.add_row("Backups", str(stats["count"]))
    table.add_row("Total size", stats["total_size_display"])
    table.add_row("Retention", str(stats["max_files"]))
    console.print(table)


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
