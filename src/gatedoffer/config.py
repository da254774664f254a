"""Platform settings — who owns the registry and factory, default fees,
authorized origins and the enabled activity/reward combinations.

Settings come from ``platform.json`` in the config directory. Secrets
never go in that file: the eligibility signer key and the data directory
come from the environment, optionally via a ``.env`` file.

Usage:
    settings = PlatformSettings.from_config_dir(Path("config"))
    env = load_environment(Path("."))
    env.signer_key  # from GATEDOFFER_SIGNER_KEY
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from gatedoffer.crypto.hashing import to_address
from gatedoffer.errors import ConfigError
from gatedoffer.models.campaign import BPS_DENOMINATOR
from gatedoffer.models.reward import DEFAULT_MAX_BATCH_SIZE

SIGNER_KEY_ENV = "GATEDOFFER_SIGNER_KEY"
DATA_DIR_ENV = "GATEDOFFER_DATA_DIR"


@dataclass(frozen=True)
class PlatformSettings:
    registry_owner: str
    factory_owner: str
    fee_recipient: Optional[str]
    fee_bps: int
    authorized_origins: tuple[str, ...] = ()
    default_proof_validity: int = 3600
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    combinations: tuple[tuple[str, str], ...] = ()

    SETTINGS_FILENAME = "platform.json"

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PlatformSettings:
        """Load and validate ``platform.json``.

        Raises:
            FileNotFoundError: If the settings file does not exist.
            ConfigError: If the settings are structurally invalid.
        """
        path = config_dir / cls.SETTINGS_FILENAME
        if not path.exists():
            raise FileNotFoundError(f"Platform settings not found: {path}")
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlatformSettings:
        for key in ("registry_owner", "factory_owner"):
            if key not in data:
                raise ConfigError(f"Platform settings missing '{key}'")
        fees = data.get("default_fee", {})
        combinations = []
        for pair in data.get("combinations", []):
            if not isinstance(pair, list) or len(pair) != 2:
                raise ConfigError(f"Combination must be [activity, reward], got {pair!r}")
            combinations.append((str(pair[0]), str(pair[1])))
        settings = cls(
            registry_owner=data["registry_owner"],
            factory_owner=data["factory_owner"],
            fee_recipient=fees.get("recipient"),
            fee_bps=int(fees.get("bps", 0)),
            authorized_origins=tuple(data.get("authorized_origins", [])),
            default_proof_validity=int(data.get("default_proof_validity", 3600)),
            max_batch_size=int(data.get("max_batch_size", DEFAULT_MAX_BATCH_SIZE)),
            combinations=tuple(combinations),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        addresses = [self.registry_owner, self.factory_owner, *self.authorized_origins]
        if self.fee_recipient is not None:
            addresses.append(self.fee_recipient)
        for value in addresses:
            try:
                to_address(value)
            except ValueError as exc:
                raise ConfigError(f"Platform settings: {exc}") from exc
        if not 0 <= self.fee_bps <= BPS_DENOMINATOR:
            raise ConfigError(f"default_fee.bps must be within 0..{BPS_DENOMINATOR}")
        if self.default_proof_validity < 0:
            raise ConfigError("default_proof_validity cannot be negative")
        if self.max_batch_size <= 0:
            raise ConfigError("max_batch_size must be positive")


@dataclass(frozen=True)
class Environment:
    signer_key: Optional[str] = None
    data_dir: Optional[Path] = None


def load_environment(root: Optional[Path] = None) -> Environment:
    """Read runtime secrets, loading ``root/.env`` first when present.

    Variables already set in the process environment win over the file.
    """
    if root is not None:
        load_dotenv(root / ".env")
    data_dir = os.getenv(DATA_DIR_ENV)
    return Environment(
        signer_key=os.getenv(SIGNER_KEY_ENV) or None,
        data_dir=Path(data_dir) if data_dir else None,
    )
