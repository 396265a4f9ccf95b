"""YAML configuration for export runs.

A configuration file names the products to export (with their API
credentials) and switches the individual sinks on or off::

    products:
      acme:
        key: 0123abcd
        secret: s3cr3t
    export:
      buffer_size: 1000
    csv:
      enabled: true
      gzip: true
      directory: /var/lib/mixport
    kinesis:
      enabled: true
      stream: mixpanel-events
      region: eu-west-1

The file is parsed with a YAML 1.2 loader, converted into typed structs and
validated; every problem found is reported at once in a :class:`ConfigError`.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from mixport.mixpanel.models import Credentials

YAML_VERSION = (1, 2)
DEFAULT_CONFIG_PATH = Path("./mixport.yaml")


class ConfigError(ValueError):
    """Raised when a configuration file cannot be loaded or is invalid."""

    def __init__(self, issues: list[str]) -> None:
        """Capture validation issues whilst preserving the aggregated message."""
        super().__init__("\n".join(issues))
        self.issues = issues


class ProductCredentials(msgspec.Struct, kw_only=True, frozen=True):
    """Mixpanel API credentials for one product.

    Attributes
    ----------
    key : str
        Mixpanel API key.
    secret : str
        Mixpanel API secret, used to sign export requests.
    token : str, optional
        Project token; not needed for exports, accepted for completeness.

    """

    key: str
    secret: str
    token: str | None = None


class ExportSettings(msgspec.Struct, kw_only=True, frozen=True):
    """Settings for the Mixpanel client and the fan-out buffers."""

    base_url: str = "https://data.mixpanel.com/api"
    timeout_s: float = 300.0
    buffer_size: int = 1000


class KinesisConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Amazon Kinesis sink settings.

    Credentials fall back to boto3's default provider chain when omitted.
    """

    enabled: bool = False
    stream: str = ""
    region: str = "us-east-1"
    access_key_id: str | None = None
    secret_access_key: str | None = None


class FileExportConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Settings shared by the file sinks (CSV, JSON, columns).

    Attributes
    ----------
    enabled : bool
        Whether the sink runs at all.
    gzip : bool
        Compress the output and add a ``.gz`` suffix.
    fifo : bool
        Create the output as a named pipe instead of a regular file.
    directory : str
        Directory the export files are created in.

    """

    enabled: bool = False
    gzip: bool = False
    fifo: bool = False
    directory: str = "."


class ColumnExportConfig(FileExportConfig, kw_only=True, frozen=True):
    """Fixed-column CSV sink settings.

    ``columns`` is the path of a JSON file mapping event names to the list of
    property columns written for that event.
    """

    columns: str = ""


class MixportConfig(msgspec.Struct, kw_only=True, frozen=True):
    """In-memory representation of a configuration file."""

    products: dict[str, ProductCredentials]
    export: ExportSettings = msgspec.field(default_factory=ExportSettings)
    kinesis: KinesisConfig = msgspec.field(default_factory=KinesisConfig)
    json: FileExportConfig = msgspec.field(default_factory=FileExportConfig)
    csv: FileExportConfig = msgspec.field(default_factory=FileExportConfig)
    columns: ColumnExportConfig = msgspec.field(default_factory=ColumnExportConfig)

    def credentials(self, product: str) -> Credentials:
        """Return the credentials configured for ``product``.

        Raises
        ------
        KeyError
            If ``product`` is not configured.

        """
        creds = self.products[product]
        return Credentials(product=product, key=creds.key, secret=creds.secret)

    def select_products(self, names: typ.Sequence[str] | None = None) -> list[Credentials]:
        """Return credentials for ``names``, or for every product when empty.

        Raises
        ------
        ConfigError
            If any name has no credentials configured.

        """
        if not names:
            return [self.credentials(product) for product in self.products]
        unknown = [name for name in names if name not in self.products]
        if unknown:
            raise ConfigError(
                [f"no credentials configured for product: {name}" for name in unknown]
            )
        return [self.credentials(name) for name in dict.fromkeys(names)]


def load_config(path: Path | str) -> MixportConfig:
    """Parse and validate a YAML configuration file."""
    path_obj = Path(path)
    try:
        loaded = _yaml().load(path_obj.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise ConfigError([f"failed to load {path_obj}: {exc}"]) from exc

    if loaded is None:
        raise ConfigError([f"configuration file is empty: {path_obj}"])

    try:
        config = msgspec.convert(loaded, type=MixportConfig)
    except msgspec.ValidationError as exc:
        raise ConfigError([f"schema validation failed: {exc}"]) from exc

    return validate_config(config)


def validate_config(config: MixportConfig) -> MixportConfig:
    """Check cross-field rules, returning ``config`` when all pass."""
    issues: list[str] = []
    if not config.products:
        issues.append("at least one product must be configured")
    for name, creds in config.products.items():
        if not name.strip():
            issues.append("product names must be non-empty")
        if not creds.key.strip():
            issues.append(f"products.{name}.key must be non-empty")
        if not creds.secret.strip():
            issues.append(f"products.{name}.secret must be non-empty")

    if config.export.buffer_size < 1:
        issues.append(
            f"export.buffer_size must be positive, got: {config.export.buffer_size}"
        )
    if config.export.timeout_s <= 0:
        issues.append(
            f"export.timeout_s must be positive, got: {config.export.timeout_s}"
        )
    if config.kinesis.enabled and not config.kinesis.stream.strip():
        issues.append("kinesis.stream is required when kinesis is enabled")
    if config.columns.enabled and not config.columns.columns.strip():
        issues.append("columns.columns is required when columns is enabled")

    if issues:
        raise ConfigError(issues)
    return config


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
