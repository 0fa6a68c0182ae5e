"""Configuration management — dataclass with config.json > env > defaults."""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path

from .constants import CLOB_BASE_URL, POLYGON
from .models import ApiKeyCreds, BuilderConfig

logger = logging.getLogger(__name__)

_ENV_MAP = {
    "host": "POLY_CLOB_HOST",
    "chain_id": "POLY_CHAIN_ID",
    "private_key": "POLY_PRIVATE_KEY",
    "creds_file": "POLY_CREDS_FILE",
    "signature_type": "POLY_SIGNATURE_TYPE",
    "funder": "POLY_FUNDER",
    "builder_key": "POLY_BUILDER_API_KEY",
    "builder_secret": "POLY_BUILDER_SECRET",
    "builder_passphrase": "POLY_BUILDER_PASSPHRASE",
    "log_level": "POLY_LOG_LEVEL",
}

# Never written back to config.json
_SECRET_FIELDS = ("private_key", "builder_secret", "builder_passphrase")


@dataclass
class Config:
    # Endpoint / network
    host: str = CLOB_BASE_URL
    chain_id: int = POLYGON

    # Auth
    private_key: str = ""
    creds_file: str = "creds.json"
    signature_type: int = 0              # 0 EOA, 1 PolyProxy, 2 EIP-1271
    funder: str = ""                     # maker address for proxy / contract wallets

    # Builder attribution (optional)
    builder_key: str = ""
    builder_secret: str = ""
    builder_passphrase: str = ""

    # Transport
    timeout: float = 15.0
    max_retries: int = 3
    base_delay: float = 1.0
    use_server_time: bool = False

    # Market orders
    market_price_buffer: float = 0.005  # fraction widened against the taker

    # Logging
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_dir: str) -> "Config":
        config_path = Path(config_dir) / "config.json"
        file_cfg: dict = {}
        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_cfg = json.load(f)
            except (json.JSONDecodeError, IOError) as exc:
                logger.warning("Failed to load %s: %s", config_path, exc)

        kwargs: dict = {}
        field_types = {f.name: f.type for f in fields(cls)}

        for f in fields(cls):
            name = f.name
            if name in file_cfg:
                kwargs[name] = _coerce(file_cfg[name], field_types[name])
            elif name in _ENV_MAP:
                env_val = os.environ.get(_ENV_MAP[name])
                if env_val is not None:
                    kwargs[name] = _coerce(env_val, field_types[name])

        return cls(**kwargs)

    def save(self, config_dir: str) -> None:
        config_path = Path(config_dir) / "config.json"
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        for name in _SECRET_FIELDS:
            data.pop(name, None)
        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)
        logger.info("Config saved to %s", config_path)

    def update(self, overrides: dict) -> None:
        field_types = {f.name: f.type for f in fields(self)}
        for key, value in overrides.items():
            if key not in field_types:
                logger.warning("Unknown config key: %s", key)
                continue
            setattr(self, key, _coerce(value, field_types[key]))

    def load_api_creds(self, config_dir: str = ".") -> ApiKeyCreds | None:
        """Load API creds from creds_file if it exists."""
        for path in [self.creds_file, str(Path(config_dir) / self.creds_file)]:
            if path and os.path.exists(path):
                with open(path) as f:
                    creds = ApiKeyCreds.from_dict(json.load(f))
                logger.info("Loaded API creds from %s", path)
                return creds
        return None

    def builder_config(self) -> BuilderConfig | None:
        builder = BuilderConfig(self.builder_key, self.builder_secret, self.builder_passphrase)
        return builder if builder.is_valid() else None


def _coerce(value, type_hint):
    if type_hint == "bool" or type_hint is bool:
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("true", "1", "yes")
    if type_hint == "int" or type_hint is int:
        return int(value)
    if type_hint == "float" or type_hint is float:
        return float(value)
    return str(value)
