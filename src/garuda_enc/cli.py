"""Command line interface for Garuda Enc."""

from __future__ import annotations

import getpass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from garuda_enc import __version__
from garuda_enc.config import EncryptorConfig
from garuda_enc.container.api import Encryptor, OperationHandle, OperationResult
from garuda_enc.container.format import MAGIC, probe
from garuda_enc.container.overview import inspect_container
from garuda_enc.crypto.kdf import resolve_kdf_params
from garuda_enc.errors import (
    ContainerFormatError,
    CryptoError,
    InputError,
    IntegrityError,
    KeyDerivationError,
    OperationAborted,
)

EXIT_SUCCESS = 0
EXIT_USAGE = 1
EXIT_CRYPTO = 2
EXIT_FS = 3
EXIT_CORRUPT = 4
EXIT_ABORTED = 5

console = Console()


def _package_version() -> str:
    try:
        return version("garuda-enc")
    except PackageNotFoundError:
        return __version__


def _prompt_password(password_opt: str | None) -> str:
    if password_opt is not None:
        return password_opt
    return getpass.getpass("Password: ")


def _human_size(num: float) -> str:
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if num < 1024 or unit == "TB":
            return f"{num:.1f} {unit}" if unit != "B" else f"{int(num)} {unit}"
        num /= 1024
    return f"{num:.1f} TB"


def _exit_code_for(result: OperationResult) -> int:
    if result.success:
        return EXIT_SUCCESS
    error = result.error
    if isinstance(error, OperationAborted):
        return EXIT_ABORTED
    if isinstance(error, (IntegrityError, CryptoError)):
        return EXIT_CRYPTO
    if isinstance(error, ContainerFormatError):
        return EXIT_CORRUPT
    if isinstance(error, (InputError, OSError)):
        return EXIT_FS
    return EXIT_USAGE


def _build_encryptor(
    iterations: int | None,
    legacy_sha1: bool,
    log_file: Path | None,
    no_log: bool,
    overwrite: bool,
) -> Encryptor:
    kdf = resolve_kdf_params(iterations, "sha1" if legacy_sha1 else None)
    config = EncryptorConfig(
        kdf=kdf,
        log_path=log_file,
        log_enabled=not no_log,
        overwrite=overwrite,
    )
    return Encryptor(config)


def _run_with_progress(
    label: str,
    start: Callable[[Callable[[int], None]], OperationHandle],
) -> OperationResult:
    with Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(label, total=100)

        def _on_progress(percent: int) -> None:
            progress.update(task, completed=percent)

        handle = start(_on_progress)
        try:
            result = handle.wait()
        except KeyboardInterrupt:
            handle.cancel()
            result = handle.wait()
    if result is None:
        raise RuntimeError(f"{label} finished without reporting a result")
    return result


def _report(result: OperationResult) -> int:
    if result.success:
        size = result.output_path.stat().st_size if result.output_path and result.output_path.exists() else 0
        console.print(f"[green]{result.message}[/green] {result.output_path} (~{_human_size(size)}).")
    else:
        console.print(f"[red]{result.message}[/red]")
    return _exit_code_for(result)


def _operation_options(fn: Callable) -> Callable:
    fn = click.option("--no-log", is_flag=True, default=False, help="Do not append to the activity log.")(fn)
    fn = click.option(
        "--log-file",
        type=click.Path(path_type=Path, dir_okay=False),
        default=None,
        help="Activity log location (defaults to garuda_enc.log next to the program).",
    )(fn)
    fn = click.option(
        "--legacy-sha1",
        is_flag=True,
        default=False,
        help="Use the HMAC-SHA-1 PBKDF2 core of legacy Windows builds.",
    )(fn)
    fn = click.option(
        "--iterations",
        type=int,
        default=None,
        help="PBKDF2 iteration count (must match the value used to encrypt).",
    )(fn)
    fn = click.option(
        "--overwrite/--no-overwrite",
        default=False,
        help="Replace an existing file at the output path.",
    )(fn)
    fn = click.option("--password", "password_opt", help="Password (will prompt if omitted).")(fn)
    return fn


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=False,
)
@click.version_option(version=_package_version(), prog_name="Garuda Enc")
def cli() -> None:
    """Password-based file encryption into self-describing .enc containers."""


@cli.command(
    help="Encrypt a file in place, replacing it with a .enc container.",
    epilog="Examples:\n  garuda-enc encrypt report.txt\n  garuda-enc encrypt report.txt --backup",
)
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--backup/--no-backup", default=False, help="Keep a plain copy as <file>.bak.")
@_operation_options
@click.pass_context
def encrypt(
    ctx: click.Context,
    path: Path,
    backup: bool,
    password_opt: str | None,
    overwrite: bool,
    iterations: int | None,
    legacy_sha1: bool,
    log_file: Path | None,
    no_log: bool,
) -> None:
    try:
        encryptor = _build_encryptor(iterations, legacy_sha1, log_file, no_log, overwrite)
    except KeyDerivationError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(EXIT_USAGE)
        return
    password = _prompt_password(password_opt)
    result = _run_with_progress(
        "Encrypting",
        lambda on_progress: encryptor.encrypt(path, password, backup, on_progress=on_progress),
    )
    ctx.exit(_report(result))


@cli.command(
    help="Decrypt a .enc container in place, restoring the original extension.",
    epilog="Example:\n  garuda-enc decrypt report.enc",
)
@click.argument("path", type=click.Path(path_type=Path))
@_operation_options
@click.pass_context
def decrypt(
    ctx: click.Context,
    path: Path,
    password_opt: str | None,
    overwrite: bool,
    iterations: int | None,
    legacy_sha1: bool,
    log_file: Path | None,
    no_log: bool,
) -> None:
    try:
        encryptor = _build_encryptor(iterations, legacy_sha1, log_file, no_log, overwrite)
    except KeyDerivationError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(EXIT_USAGE)
        return
    password = _prompt_password(password_opt)
    result = _run_with_progress(
        "Decrypting",
        lambda on_progress: encryptor.decrypt(path, password, on_progress=on_progress),
    )
    ctx.exit(_report(result))


@cli.command(help="Report whether a file is a Garuda Enc container.")
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def check(ctx: click.Context, path: Path) -> None:
    if probe(path):
        console.print(f"[green]{path} is an encrypted container.[/green]")
        ctx.exit(EXIT_SUCCESS)
        return
    console.print(f"[yellow]{path} is not an encrypted container.[/yellow]")
    ctx.exit(EXIT_CORRUPT)


@cli.command(
    help="Display container header information without decrypting.",
    epilog="Example:\n  garuda-enc info report.enc",
)
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def info(ctx: click.Context, path: Path) -> None:
    try:
        overview = inspect_container(path)
    except InputError as exc:
        console.print(f"[red]{exc}[/red]")
        ctx.exit(EXIT_FS)
        return
    except ContainerFormatError as exc:
        console.print(f"[red]Unsupported or invalid container:[/red] {exc}")
        ctx.exit(EXIT_CORRUPT)
        return
    except OSError as exc:
        console.print(f"[red]Filesystem error:[/red] {exc}")
        ctx.exit(EXIT_FS)
        return

    header = overview.header
    table = Table(show_header=False, box=None)
    table.add_row("Magic", MAGIC.decode("ascii"))
    table.add_row("Original extension", header.extension or "(none)")
    table.add_row("Header length", f"{header.header_len} B")
    table.add_row("Ciphertext", f"~{_human_size(overview.ciphertext_len)}")
    table.add_row("Block aligned", "yes" if overview.block_aligned else "no")

    console.print("[bold]Garuda container[/bold]")
    console.print(table)
    ctx.exit(EXIT_SUCCESS)


def main(argv: list[str] | None = None) -> int:
    try:
        return cli.main(args=argv, prog_name="garuda-enc", standalone_mode=False)
    except SystemExit as exc:  # noqa: TRY003
        code = exc.code if isinstance(exc.code, int) else EXIT_USAGE
        return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
