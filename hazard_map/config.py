# config.py — settings loaded from the Streamlit secrets file
import os
import sys
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import toml

from .errors import ConfigError
from .models import DEFAULT_REGION, RegionState

logger = logging.getLogger(__name__)

DEFAULT_SECRETS_PATH = os.path.join(".streamlit", "secrets.toml")
SECRETS_ENV = "HAZARD_MAP_SECRETS"
SERVICE_ACCOUNT_KEY = "serviceAccount"
SETTINGS_KEY = "hazard_map"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout: float = 15.0        # seconds
    maximum_age: float = 10.0    # seconds a cached fix may be reused
    prompt_timeout: float = 60.0  # seconds to wait for the browser to answer at all


@dataclass(frozen=True)
class Settings:
    collection: str = "events"
    default_region: RegionState = DEFAULT_REGION
    position: PositionOptions = field(default_factory=PositionOptions)
    platform: Optional[str] = None   # None = detect from the browser
    refresh_interval_ms: int = 1500
    log_level: str = "INFO"
    service_account: Optional[dict] = None
    service_account_path: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        data = dict(data or {})
        section = dict(data.get(SETTINGS_KEY) or {})
        sa = data.get(SERVICE_ACCOUNT_KEY)
        try:
            region = section.get("default_region")
            if region:
                region = RegionState(
                    latitude=float(region.get("latitude", DEFAULT_REGION.latitude)),
                    longitude=float(region.get("longitude", DEFAULT_REGION.longitude)),
                    latitude_delta=float(region.get("latitude_delta", DEFAULT_REGION.latitude_delta)),
                    longitude_delta=float(region.get("longitude_delta", DEFAULT_REGION.longitude_delta)),
                )
            else:
                region = DEFAULT_REGION
            position = PositionOptions(
                enable_high_accuracy=bool(section.get("high_accuracy", True)),
                timeout=float(section.get("position_timeout", 15.0)),
                maximum_age=float(section.get("position_maximum_age", 10.0)),
                prompt_timeout=float(section.get("prompt_timeout", 60.0)),
            )
            refresh = int(section.get("refresh_interval_ms", 1500))
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"invalid [{SETTINGS_KEY}] settings: {e}") from e

        if position.timeout <= 0 or position.maximum_age < 0:
            raise ConfigError("position_timeout must be > 0 and position_maximum_age >= 0")
        if position.prompt_timeout <= 0:
            raise ConfigError("prompt_timeout must be > 0")
        if refresh <= 0:
            raise ConfigError("refresh_interval_ms must be > 0")
        collection = str(section.get("collection") or "events").strip()
        if not collection or "/" in collection:
            raise ConfigError(f"invalid collection name: {collection!r}")

        return cls(
            collection=collection,
            default_region=region,
            position=position,
            platform=(section.get("platform") or None),
            refresh_interval_ms=refresh,
            log_level=str(section.get("log_level") or "INFO").upper(),
            service_account=dict(sa) if sa else None,
            service_account_path=section.get("service_account_path") or None,
        )


def secrets_path() -> str:
    return os.environ.get(SECRETS_ENV) or DEFAULT_SECRETS_PATH


def load_settings(path: Optional[str] = None) -> Settings:
    path = path or secrets_path()
    if not os.path.exists(path):
        logger.info("no secrets file at %s, using defaults", path)
        return Settings()
    try:
        data = toml.load(path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    return Settings.from_mapping(data)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ---------------- secrets helper ----------------
def write_secrets(service_account_json: str, out_path: Optional[str] = None) -> str:
    """Copy a downloaded service-account JSON into the secrets file, keeping any other tables."""
    out_path = out_path or secrets_path()
    with open(service_account_json) as f:
        account = json.load(f)
    existing = {}
    if os.path.exists(out_path):
        existing = toml.load(out_path)
    existing[SERVICE_ACCOUNT_KEY] = account
    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(out_path, "w") as f:
        toml.dump(existing, f)
    return out_path


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or len(argv) > 2:
        print("usage: hazard-map-secrets SERVICE_ACCOUNT_JSON [SECRETS_TOML]", file=sys.stderr)
        return 2
    try:
        out = write_secrets(argv[0], argv[1] if len(argv) > 1 else None)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(f"wrote {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
