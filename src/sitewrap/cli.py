"""Typer CLI entrypoint for sitewrap."""

from __future__ import annotations

import logging
import signal
import threading
from pathlib import Path
from types import FrameType
from typing import NoReturn

import typer
import yaml

from sitewrap.config import load_settings
from sitewrap.errors import SitewrapError
from sitewrap.logging_utils import configure_logging
from sitewrap.options import build_options
from sitewrap.pipeline import run_build
from sitewrap.platforms import PLATFORM_NAMES, PLATFORMS

app = typer.Typer(
    add_completion=False,
    help="Wrap a website or local HTML page into a native desktop bundle.",
    no_args_is_help=True,
)

LOG_FILE_NAME = "sitewrap.log"


def _parse_csv(value: str | None, option_name: str) -> list[str] | None:
    if value is None:
        return None
    items = [part.strip() for part in value.split(",") if part.strip() != ""]
    if not items:
        raise typer.BadParameter(f"{option_name} must contain at least one value.")
    return items


def _normalize_choice(value: str | None, *, allowed: set[str], option_name: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in allowed:
        allowed_rendered = ",".join(sorted(allowed))
        raise typer.BadParameter(f"{option_name} must be one of: {allowed_rendered}")
    return normalized


def _install_termination_handler() -> None:
    """Turn SIGTERM into SystemExit so staging cleanup in ``finally`` blocks still runs."""

    if threading.current_thread() is not threading.main_thread():
        return

    def _handle(signum: int, frame: FrameType | None) -> None:
        raise SystemExit(128 + signum)

    signal.signal(signal.SIGTERM, _handle)


def _fail(exc: SitewrapError) -> NoReturn:
    typer.echo(f"error [{exc.stage}]: {exc}", err=True)
    if exc.leftover_path is not None:
        typer.echo(f"staging directory could not be removed; delete it manually: {exc.leftover_path}", err=True)
    raise typer.Exit(code=exc.exit_code)


_CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)


@app.command("show-config")
def show_config(config_file: Path | None = _CONFIG_FILE_OPTION) -> None:
    """Print the effective configuration after env overrides."""

    settings = load_settings(config_file=config_file)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("platforms")
def platforms_cmd() -> None:
    """List supported platforms with their icon format and bundle targets."""

    for name in PLATFORM_NAMES:
        descriptor = PLATFORMS[name]
        typer.echo(
            f"{descriptor.name}: icon={descriptor.icon_format} "
            f"targets={','.join(descriptor.targets)} "
            f"default={','.join(descriptor.default_targets)} "
            f"capabilities={','.join(sorted(descriptor.capabilities))}"
        )


@app.command("build")
def build(
    url: str = typer.Argument(..., help="Target http(s) URL or path to a local HTML file."),
    name: str | None = typer.Option(None, "--name", help="Application name (default: derived from the URL)."),
    width: int | None = typer.Option(None, "--width", help="Window width in pixels."),
    height: int | None = typer.Option(None, "--height", help="Window height in pixels."),
    icon: str | None = typer.Option(None, "--icon", help="Icon file path or http(s) URL."),
    inject: list[Path] | None = typer.Option(
        None,
        "--inject",
        help="JS or CSS file injected into every page; repeat for several files.",
    ),
    platform: str | None = typer.Option(
        None,
        "--platform",
        help="Target platform: macos, windows or linux (default: this machine).",
    ),
    targets: str | None = typer.Option(
        None,
        "--targets",
        help="Comma-separated bundle formats, e.g. deb,appimage (default: per platform).",
    ),
    system_tray: bool | None = typer.Option(None, "--system-tray/--no-system-tray", help="Show a tray icon."),
    multi_instance: bool | None = typer.Option(
        None,
        "--multi-instance/--single-instance",
        help="Allow several running copies of the app.",
    ),
    proxy_url: str | None = typer.Option(None, "--proxy-url", help="http, https or socks5 proxy for the webview."),
    user_agent: str | None = typer.Option(None, "--user-agent", help="Override the webview user agent."),
    output_dir: Path | None = typer.Option(
        None,
        "--output-dir",
        help="Directory that receives the bundles (default: current directory).",
        file_okay=False,
        dir_okay=True,
    ),
    app_version: str | None = typer.Option(None, "--app-version", help="Bundle version, MAJOR.MINOR.PATCH."),
    identifier: str | None = typer.Option(
        None,
        "--identifier",
        help="Reverse-domain bundle identifier (default: derived from the URL).",
    ),
    fullscreen: bool | None = typer.Option(None, "--fullscreen/--no-fullscreen", help="Start fullscreen."),
    resizable: bool | None = typer.Option(None, "--resizable/--fixed-size", help="Allow window resizing."),
    hide_title_bar: bool | None = typer.Option(
        None,
        "--hide-title-bar/--show-title-bar",
        help="Immersive title bar (macOS only).",
    ),
    always_on_top: bool | None = typer.Option(None, "--always-on-top/--no-always-on-top", help="Keep above other windows."),
    dark_mode: bool | None = typer.Option(None, "--dark-mode/--light-mode", help="Force dark appearance."),
    disabled_web_shortcuts: bool | None = typer.Option(
        None,
        "--disable-web-shortcuts/--enable-web-shortcuts",
        help="Disable the in-page keyboard shortcuts.",
    ),
    activation_shortcut: str | None = typer.Option(
        None,
        "--activation-shortcut",
        help="Global shortcut that brings the window forward, e.g. CmdOrControl+Shift+P.",
    ),
    multi_arch: bool = typer.Option(False, "--multi-arch", help="Universal binary for Intel and Apple Silicon (macOS)."),
    installer_language: str | None = typer.Option(
        None,
        "--installer-language",
        help="Installer UI language such as en-US (Windows).",
    ),
    use_local_file: bool = typer.Option(
        False,
        "--use-local-file",
        help="For a local entry file, bundle its whole folder.",
    ),
    debug: bool = typer.Option(False, "--debug", help="Debug build and verbose logging."),
    config_file: Path | None = _CONFIG_FILE_OPTION,
) -> None:
    """Build a desktop bundle for URL."""

    normalized_platform = _normalize_choice(platform, allowed=set(PLATFORM_NAMES), option_name="platform")
    target_list = _parse_csv(targets, "targets")

    settings = load_settings(config_file=config_file)

    try:
        options = build_options(
            settings.defaults,
            url=url,
            name=name,
            platform=normalized_platform,
            width=width,
            height=height,
            icon=icon,
            inject=tuple(inject) if inject else None,
            targets=tuple(target_list) if target_list else None,
            system_tray=system_tray,
            multi_instance=multi_instance,
            proxy_url=proxy_url,
            user_agent=user_agent,
            output_dir=output_dir,
            app_version=app_version,
            identifier=identifier,
            fullscreen=fullscreen,
            resizable=resizable,
            hide_title_bar=hide_title_bar,
            always_on_top=always_on_top,
            dark_mode=dark_mode,
            disabled_web_shortcuts=disabled_web_shortcuts,
            activation_shortcut=activation_shortcut,
            multi_arch=multi_arch,
            installer_language=installer_language,
            use_local_file=use_local_file,
            debug=debug,
        )
    except SitewrapError as exc:
        _fail(exc)

    # Options are valid; only now may the log file be created.
    logger = configure_logging(settings.paths.logs_root / LOG_FILE_NAME, level=logging.DEBUG if debug else logging.INFO)
    _install_termination_handler()
    try:
        result = run_build(settings, options, logger=logger)
    except SitewrapError as exc:
        _fail(exc)

    typer.echo(f"run_id: {result.run_id}")
    typer.echo(f"platform: {result.platform}")
    typer.echo(f"icon_source: {result.icon.source_kind}")
    for warning in result.icon.warnings:
        typer.echo(f"warning: {warning}", err=True)
    for artifact in result.artifacts:
        typer.echo(f"artifact: {artifact.path}")
    if not result.staging_removed:
        typer.echo(f"staging directory could not be removed; delete it manually: {result.staging_root}", err=True)
    if result.summary_path is not None:
        typer.echo(f"summary_path: {result.summary_path}")


def main() -> None:
    app()
