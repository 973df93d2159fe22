#!/usr/bin/env python3
"""jdkstrap CLI entry point."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import typer

from .certs import CaResources, report_missing, select_certificates, serial_number
from .config import resolve_config_path, resolve_storage_dir, write_default_config
from .console import configure_console, flush, log, log_error, logs_to_stderr
from .constants import EXIT_CODE_FAILURE, EXIT_CODE_INTERRUPT, EXIT_CODE_USAGE, PACKAGE_NAME
from .context import AppContext
from .errors import JdkstrapError
from .installer import setup_jdk
from .layout import JdkConfig, certs_dir, write_cert_serials, write_jdk_config
from .platforms import Arch, Os, current_arch, current_os
from .spec import CaCerts, JdkDistributionName, JdkRelease, JdkSpec
from .version import cli_version

app = typer.Typer(help="Install JDKs exactly once, with CA certificates baked in")
certs_app = typer.Typer(help="Inspect certificates and the system trust store")
config_app = typer.Typer(help="Configuration file helpers")
app.add_typer(certs_app, name="certs")
app.add_typer(config_app, name="config")


def _click_base(exc_type: type, name: str) -> type:
    """Base class ``name`` of ``exc_type``, from whichever click copy typer raises with."""
    for cls in exc_type.__mro__:
        if cls.__name__ == name:
            return cls
    raise TypeError(f"{exc_type.__name__} does not derive from {name}")


_ClickException = _click_base(typer.BadParameter, "ClickException")


@dataclass
class CLIContext:
    config_path: Optional[Path] = None
    _app_context: Optional[AppContext] = None

    def app_context(self) -> AppContext:
        if self._app_context is None:
            self._app_context = AppContext.load(self.config_path)
        return self._app_context


def _cli_context(ctx: typer.Context) -> CLIContext:
    if not isinstance(ctx.obj, CLIContext):
        ctx.obj = CLIContext()
    return ctx.obj


def _fail(exc: JdkstrapError) -> typer.Exit:
    log_error(f"error: {exc}")
    return typer.Exit(code=EXIT_CODE_FAILURE)


def parse_pairs(values: Sequence[str], option: str) -> Dict[str, str]:
    """Split repeated ``KEY=VALUE`` options into a dict."""
    pairs: Dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            raise typer.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint=option)
        pairs[key] = value
    return pairs


def _enum_option(cls, value: str, option: str):
    try:
        return cls.from_ui_name(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=option) from exc


def build_spec(
    distribution: str,
    version: str,
    os_name: Optional[str],
    arch: Optional[str],
    certs: Sequence[str],
) -> JdkSpec:
    name = _enum_option(JdkDistributionName, distribution, "--distribution")
    release = JdkRelease(
        version=version,
        os=_enum_option(Os, os_name, "--os") if os_name else current_os(),
        arch=_enum_option(Arch, arch, "--arch") if arch else current_arch(),
    )
    ca_certs = CaCerts.from_mapping(parse_pairs(certs, "--cert"))
    return JdkSpec(distribution=name, release=release, ca_certs=ca_certs)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PACKAGE_NAME} {cli_version()}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def cli_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="show the jdkstrap version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="log executed commands"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="only log errors"),
    config: Optional[Path] = typer.Option(
        None, "--config", help="config file (default: $JDKSTRAP_CONFIG or the user config dir)"
    ),
) -> None:
    configure_console(quiet=quiet, verbose=verbose)
    ctx.obj = CLIContext(config_path=config)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=EXIT_CODE_USAGE)


@app.command()
def setup(
    destination: Path = typer.Argument(..., help="JDK installation directory to create"),
    certs_dir: Path = typer.Argument(..., help="directory of <alias>.serial-number files"),
    java_home: Optional[Path] = typer.Option(
        None, "--java-home", help="JDK to copy (default: $JAVA_HOME, then java on PATH)"
    ),
) -> None:
    """Copy a local JDK into DESTINATION and import the listed system certificates."""
    try:
        copied = setup_jdk(destination, certs_dir, java_home)
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    if copied:
        log(f"Successfully installed JDK into {destination}")


DISTRIBUTION_HELP = f"one of {JdkDistributionName.ui_names()}"


@app.command()
def install(
    ctx: typer.Context,
    distribution: str = typer.Option(..., "--distribution", "-d", help=DISTRIBUTION_HELP),
    version: str = typer.Option(..., "--version", help="exact vendor version string"),
    os_name: Optional[str] = typer.Option(None, "--os", help=f"one of {Os.ui_names()}"),
    arch: Optional[str] = typer.Option(None, "--arch", help=f"one of {Arch.ui_names()}"),
    cert: List[str] = typer.Option([], "--cert", help="ALIAS=PEM_FILE to bake in (repeatable)"),
    storage_dir: Optional[Path] = typer.Option(None, "--storage-dir", help="JDK storage root"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="override the download host"),
) -> None:
    """Install a JDK and print its path."""
    try:
        spec = build_spec(distribution, version, os_name, arch, cert)
        overrides = {spec.distribution: base_url} if base_url else None
        manager = _cli_context(ctx).app_context().manager(storage_dir, overrides)
        # stdout carries only the resulting path
        with logs_to_stderr():
            path = manager.jdk(spec)
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    typer.echo(str(path))


def _write_gradle_jdk_config(gradle_dir: Path, java_version: str, spec: JdkSpec, url: str) -> None:
    config = JdkConfig(download_url=url, local_path=spec.install_dir_name())
    directory = write_jdk_config(
        gradle_dir, java_version, spec.release.os, spec.release.arch, config
    )
    log(f"wrote JDK config to {directory}")


@app.command()
def resolve(
    ctx: typer.Context,
    distribution: str = typer.Option(..., "--distribution", "-d", help=DISTRIBUTION_HELP),
    version: str = typer.Option(..., "--version", help="exact vendor version string"),
    os_name: Optional[str] = typer.Option(None, "--os", help=f"one of {Os.ui_names()}"),
    arch: Optional[str] = typer.Option(None, "--arch", help=f"one of {Arch.ui_names()}"),
    cert: List[str] = typer.Option([], "--cert", help="ALIAS=PEM_FILE to bake in (repeatable)"),
    storage_dir: Optional[Path] = typer.Option(None, "--storage-dir", help="JDK storage root"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="override the download host"),
    gradle_dir: Optional[Path] = typer.Option(
        None, "--gradle-dir", help="also write the bootstrapper config under this directory"
    ),
    java_version: Optional[str] = typer.Option(
        None, "--java-version", help="major Java version the config is keyed by"
    ),
) -> None:
    """Print the download URL, content hash and install path without installing."""
    if gradle_dir is not None and not java_version:
        raise typer.BadParameter("required with --gradle-dir", param_hint="--java-version")
    try:
        spec = build_spec(distribution, version, os_name, arch, cert)
        overrides = {spec.distribution: base_url} if base_url else None
        app_context = _cli_context(ctx).app_context()
        url, _ = app_context.distributions(overrides).download_url(spec.distribution, spec.release)
        short_hash = spec.consistent_short_hash()
        path = app_context.storage_dir(storage_dir) / spec.install_dir_name()
        if gradle_dir is not None:
            with logs_to_stderr():
                _write_gradle_jdk_config(gradle_dir, java_version, spec, url)
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    typer.echo(f"url: {url}")
    typer.echo(f"hash: {short_hash}")
    typer.echo(f"path: {path}")


def _read_pem(pem_file: Path) -> str:
    try:
        return pem_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise JdkstrapError(f"Failed to read {pem_file}: {exc}") from exc


@certs_app.command("serial")
def certs_serial(pem_file: Path = typer.Argument(..., help="PEM encoded certificate")) -> None:
    """Print the decimal serial number of a certificate."""
    try:
        typer.echo(serial_number(_read_pem(pem_file)))
    except JdkstrapError as exc:
        raise _fail(exc) from exc


@certs_app.command("mark")
def certs_mark(
    gradle_dir: Path = typer.Argument(..., help="directory holding the certs/ marker directory"),
    cert: List[str] = typer.Option(
        [], "--cert", help="ALIAS=PEM_FILE whose serial number to record (repeatable)"
    ),
) -> None:
    """Record certificate serial numbers for `setup` to import."""
    pem_by_alias = parse_pairs(cert, "--cert")
    if not pem_by_alias:
        raise typer.BadParameter("at least one certificate is required", param_hint="--cert")
    try:
        serial_by_alias = {
            alias: serial_number(_read_pem(Path(pem_file)))
            for alias, pem_file in pem_by_alias.items()
        }
        directory = certs_dir(gradle_dir)
        write_cert_serials(directory, serial_by_alias)
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    for alias in sorted(serial_by_alias):
        typer.echo(f"{alias}\t{serial_by_alias[alias]}")
    log(f"wrote {len(serial_by_alias)} serial number(s) to {directory}")


@certs_app.command("system")
def certs_system(
    serial: List[str] = typer.Option(
        [], "--serial", help="SERIAL=ALIAS to select from the trust store (repeatable)"
    ),
) -> None:
    """List the host trust store, or the certificates matching the given serials."""
    alias_by_serial = parse_pairs(serial, "--serial")
    try:
        parsed = CaResources().system_certificates()
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    if not alias_by_serial:
        for cert in parsed:
            typer.echo(f"{cert.serial_number}\t{cert.subject}")
        return
    selection = select_certificates(parsed, alias_by_serial)
    serial_by_alias = {alias: number for number, alias in alias_by_serial.items()}
    for cert in selection.found:
        typer.echo(f"{cert.alias}\t{serial_by_alias[cert.alias]}")
    report_missing(selection)
    if selection.missing_aliases:
        raise typer.Exit(code=EXIT_CODE_FAILURE)


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="overwrite an existing config file"),
) -> None:
    """Write a commented config file."""
    try:
        path = write_default_config(_cli_context(ctx).config_path, force=force)
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    log(f"wrote {path}")


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Print the config file location."""
    typer.echo(str(_cli_context(ctx).config_path or resolve_config_path()))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the effective storage root and base URLs."""
    try:
        app_context = _cli_context(ctx).app_context()
    except JdkstrapError as exc:
        raise _fail(exc) from exc
    storage, source = resolve_storage_dir(None, app_context.config)
    typer.echo(f"storage_dir = {storage} ({source})")
    distributions = app_context.distributions()
    for name in distributions.names():
        typer.echo(f"{name.ui_name}.base_url = {distributions.base_url(name)}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    command = typer.main.get_command(app)
    try:
        rc = command.main(
            args=list(argv) if argv is not None else None,
            prog_name=PACKAGE_NAME,
            standalone_mode=False,
        )
    except SystemExit as exc:
        code = exc.code
        return code if isinstance(code, int) else (0 if code is None else EXIT_CODE_FAILURE)
    except (KeyboardInterrupt, typer.Abort):
        log_error("interrupted")
        return EXIT_CODE_INTERRUPT
    except _ClickException as exc:
        exc.show()
        return exc.exit_code
    except JdkstrapError as exc:
        log_error(f"error: {exc}")
        return EXIT_CODE_FAILURE
    finally:
        flush()
    return rc if isinstance(rc, int) else 0


if __name__ == "__main__":
    sys.exit(main())
