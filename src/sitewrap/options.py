"""Validated, immutable build options assembled from CLI input."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from sitewrap.config import DefaultsConfig
from sitewrap.errors import ValidationError
from sitewrap.platforms import (
    CAP_HIDE_TITLE_BAR,
    CAP_INSTALLER_LANGUAGE,
    CAP_MULTI_ARCH,
    CAP_SYSTEM_TRAY,
    PlatformDescriptor,
    PlatformName,
    detect_host_platform,
    get_platform,
)

UrlKind = Literal["web", "local"]

MAX_WINDOW_DIMENSION = 100_000
DEFAULT_IDENTIFIER_PREFIX = "com.sitewrap"
NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 ._-]{0,63}$")
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*(\.[A-Za-z0-9-]+)+$")
LANGUAGE_PATTERN = re.compile(r"^[a-z]{2}-[A-Z]{2}$")
INJECT_SUFFIXES = frozenset({".js", ".css"})
PROXY_SCHEMES = frozenset({"http", "https", "socks5"})


def is_web_url(value: str) -> bool:
    """Return True for absolute http(s) URLs with a host."""

    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def _has_foreign_scheme(value: str) -> bool:
    return "://" in value and not is_web_url(value)


def derive_name(url: str, url_kind: UrlKind) -> str:
    """Derive a display name from a URL host or a local file stem."""

    if url_kind == "local":
        candidate = Path(url).stem
    else:
        labels = [label for label in (urlparse(url).hostname or "").split(".") if label]
        if len(labels) > 1 and labels[0] == "www":
            labels = labels[1:]
        candidate = labels[0] if labels else ""
    cleaned = re.sub(r"[^A-Za-z0-9 ._-]+", "-", candidate).strip(" ._-")[:64]
    if not cleaned:
        return "App"
    return cleaned[:1].upper() + cleaned[1:]


def derive_identifier(url: str, prefix: str = DEFAULT_IDENTIFIER_PREFIX) -> str:
    """Derive a stable reverse-domain bundle identifier from the target URL."""

    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:10]
    return f"{prefix}.app{digest}"


def slugify_name(name: str) -> str:
    """Lowercase, hyphen-separated form used where package names must be simple."""

    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "app"


class BuildOptions(BaseModel):
    """All resolved inputs for one build invocation.

    Instances are frozen and fully validated; downstream stages never
    re-check primitive fields. Tri-state flags (``None``) mean the user did
    not supply a value and configuration documents keep theirs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    url_kind: UrlKind = "web"
    platform: PlatformName = Field(default_factory=detect_host_platform)
    name: str
    width: int = Field(default=1200, gt=0, le=MAX_WINDOW_DIMENSION)
    height: int = Field(default=780, gt=0, le=MAX_WINDOW_DIMENSION)
    icon: str | None = None
    inject: tuple[Path, ...] = ()
    system_tray: bool | None = None
    multi_instance: bool | None = None
    proxy_url: str | None = None
    user_agent: str | None = None
    output_dir: Path = Field(default_factory=Path.cwd)
    app_version: str = "1.0.0"
    identifier: str
    targets: tuple[str, ...] = Field(default=(), validate_default=True)
    debug: bool = False
    fullscreen: bool | None = None
    resizable: bool | None = None
    hide_title_bar: bool | None = None
    always_on_top: bool | None = None
    dark_mode: bool | None = None
    disabled_web_shortcuts: bool | None = None
    activation_shortcut: str | None = None
    multi_arch: bool = False
    installer_language: str | None = None
    use_local_file: bool = False

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)
        url = values.get("url")
        if isinstance(url, str) and url.strip():
            url = url.strip()
            url_kind: UrlKind = "web" if is_web_url(url) else "local"
            values["url_kind"] = url_kind
            if not values.get("name"):
                values["name"] = derive_name(url, url_kind)
            if not values.get("identifier"):
                values["identifier"] = derive_identifier(url)
        return values

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        value = value.strip()
        if is_web_url(value):
            return value
        if _has_foreign_scheme(value):
            raise ValueError(f"unsupported URL scheme in {value!r}; use http(s) or a local file")
        path = Path(value).expanduser()
        if not path.is_file():
            raise ValueError(f"{value!r} is neither an absolute http(s) URL nor an existing local file")
        return str(path.resolve())

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not NAME_PATTERN.match(value):
            raise ValueError(
                "must start with a letter or digit and contain only letters, digits, spaces, '.', '_' or '-' (max 64)"
            )
        return value

    @field_validator("icon")
    @classmethod
    def _check_icon(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if is_web_url(value):
            return value
        if _has_foreign_scheme(value):
            raise ValueError(f"unsupported icon URL scheme in {value!r}")
        path = Path(value).expanduser()
        if not path.is_file():
            raise ValueError(f"icon file does not exist: {value}")
        return str(path.resolve())

    @field_validator("inject")
    @classmethod
    def _check_inject(cls, value: tuple[Path, ...]) -> tuple[Path, ...]:
        resolved: list[Path] = []
        seen_names: dict[str, Path] = {}
        for index, item in enumerate(value):
            path = Path(item).expanduser()
            if not path.is_file():
                raise ValueError(f"inject[{index}] does not exist: {item}")
            if path.suffix.lower() not in INJECT_SUFFIXES:
                raise ValueError(f"inject[{index}] must be a .js or .css file: {item}")
            path = path.resolve()
            previous = seen_names.get(path.name)
            if previous is not None and previous != path:
                raise ValueError(f"inject[{index}] file name {path.name!r} collides with {previous}")
            if previous is None:
                seen_names[path.name] = path
                resolved.append(path)
        return tuple(resolved)

    @field_validator("proxy_url")
    @classmethod
    def _check_proxy(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in PROXY_SCHEMES or not parsed.netloc:
            raise ValueError("must be an http://, https:// or socks5:// URL with a host")
        return value

    @field_validator("user_agent")
    @classmethod
    def _check_user_agent(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("output_dir")
    @classmethod
    def _check_output_dir(cls, value: Path) -> Path:
        path = value.expanduser()
        if path.exists() and not path.is_dir():
            raise ValueError(f"{value} exists and is not a directory")
        return path.resolve()

    @field_validator("app_version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not VERSION_PATTERN.match(value.strip()):
            raise ValueError("must look like MAJOR.MINOR.PATCH")
        return value.strip()

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not IDENTIFIER_PATTERN.match(value.strip()):
            raise ValueError("must be a reverse-domain identifier such as com.example.app")
        return value.strip()

    @field_validator("targets")
    @classmethod
    def _check_targets(cls, value: tuple[str, ...], info: ValidationInfo) -> tuple[str, ...]:
        platform = info.data.get("platform")
        if platform is None:
            return value
        descriptor = get_platform(platform)
        if not value:
            return descriptor.default_targets
        normalized: list[str] = []
        for target in value:
            candidate = target.strip().lower()
            descriptor.artifact_kind(candidate)
            if candidate not in normalized:
                normalized.append(candidate)
        return tuple(normalized)

    @field_validator("system_tray")
    @classmethod
    def _check_system_tray(cls, value: bool | None, info: ValidationInfo) -> bool | None:
        if value:
            _require_capability(info, CAP_SYSTEM_TRAY, "system tray")
        return value

    @field_validator("hide_title_bar")
    @classmethod
    def _check_hide_title_bar(cls, value: bool | None, info: ValidationInfo) -> bool | None:
        if value:
            _require_capability(info, CAP_HIDE_TITLE_BAR, "hiding the title bar")
        return value

    @field_validator("activation_shortcut")
    @classmethod
    def _check_activation_shortcut(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("multi_arch")
    @classmethod
    def _check_multi_arch(cls, value: bool, info: ValidationInfo) -> bool:
        if value:
            _require_capability(info, CAP_MULTI_ARCH, "multi-architecture builds")
        return value

    @field_validator("installer_language")
    @classmethod
    def _check_installer_language(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not LANGUAGE_PATTERN.match(value):
            raise ValueError("must look like en-US")
        _require_capability(info, CAP_INSTALLER_LANGUAGE, "installer language")
        return value

    @property
    def descriptor(self) -> PlatformDescriptor:
        return get_platform(self.platform)

    @property
    def is_local(self) -> bool:
        return self.url_kind == "local"

    @property
    def host(self) -> str | None:
        if self.is_local:
            return None
        return urlparse(self.url).hostname

    @property
    def package_name(self) -> str:
        return slugify_name(self.name)

    @property
    def artifact_stem(self) -> str:
        """File stem for relocated artifacts; simple slugs where the platform requires them."""

        return self.package_name if self.descriptor.slug_names else self.name


def _require_capability(info: ValidationInfo, capability: str, feature: str) -> None:
    platform = info.data.get("platform")
    if platform is None:
        return
    descriptor = get_platform(platform)
    if not descriptor.supports(capability):
        raise ValueError(f"{feature} is not supported when building for {descriptor.label}")


def _render_loc(loc: tuple[Any, ...]) -> str:
    rendered = ""
    for part in loc:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered += f".{part}" if rendered else str(part)
    return rendered or "options"


def _to_validation_error(exc: PydanticValidationError) -> ValidationError:
    first = exc.errors()[0]
    message = str(first.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return ValidationError(_render_loc(tuple(first.get("loc", ()))), message)


def build_options(defaults: DefaultsConfig | None = None, **values: Any) -> BuildOptions:
    """Build validated options, filling unset values from configured defaults.

    ``None`` values are treated as "not supplied". The first validation
    problem is raised as :class:`sitewrap.errors.ValidationError`.
    """

    effective_defaults = defaults or DefaultsConfig()
    payload = {key: value for key, value in values.items() if value is not None}
    payload.setdefault("width", effective_defaults.width)
    payload.setdefault("height", effective_defaults.height)
    payload.setdefault("app_version", effective_defaults.app_version)
    url = payload.get("url")
    if "identifier" not in payload and isinstance(url, str) and url.strip():
        payload["identifier"] = derive_identifier(url.strip(), effective_defaults.identifier_prefix)
    try:
        return BuildOptions(**payload)
    except PydanticValidationError as exc:
        raise _to_validation_error(exc) from exc
