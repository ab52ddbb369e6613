from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class NetworkConfig:
    api_port: int = 8001


@dataclass
class HardwareConfig:
    pressure_min: int = 0
    pressure_max: int = 200
    current_min: int = 0
    current_max: int = 200
    # Real seconds spent per simulated second of work
    seconds_per_unit: float = 1.0
    log_name_attempts: int = 3


@dataclass
class RecipeConfig:
    constant_pressure_seconds: int = 10
    constant_current_seconds: int = 10
    ramp_seconds: int = 10
    ramp_min_part_size: int = 50

    def __post_init__(self) -> None:
        for name in ("constant_pressure_seconds", "constant_current_seconds", "ramp_seconds"):
            if int(getattr(self, name)) < 0:
                raise ValueError(f"recipes.{name} must not be negative")


@dataclass
class StorageConfig:
    log_dir: str = "logs"
    recipe_dir: str = "recipes"
    reference_dir: str = "reference"


@dataclass
class ValidationConfig:
    # False keeps the legacy rule: a record pair only mismatches when all fields differ
    strict: bool = False


@dataclass
class DeviceConfig:
    device_id: str = "station1"
    network: NetworkConfig = field(default_factory=NetworkConfig)
    hardware: HardwareConfig = field(default_factory=HardwareConfig)
    recipes: RecipeConfig = field(default_factory=RecipeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)


def _load_yaml(path: str) -> Dict[str, Any]:
    raw = Path(path).read_text()
    data = yaml.safe_load(raw) if raw else {}
    return data or {}


def _resolve(base: Path, value: str) -> str:
    p = Path(value)
    return str(p if p.is_absolute() else (base / p).resolve())


def load_config(path: str) -> DeviceConfig:
    """
    Read YAML config into a typed DeviceConfig with sensible defaults.
    Relative storage directories are resolved against the config file location.
    """
    data = _load_yaml(path)
    base = Path(path).resolve().parent

    storage = StorageConfig(**data.get("storage", {}))
    storage.log_dir = _resolve(base, storage.log_dir)
    storage.recipe_dir = _resolve(base, storage.recipe_dir)
    storage.reference_dir = _resolve(base, storage.reference_dir)

    return DeviceConfig(
        device_id=data.get("device_id", "station1"),
        network=NetworkConfig(**data.get("network", {})),
        hardware=HardwareConfig(**data.get("hardware", {})),
        recipes=RecipeConfig(**data.get("recipes", {})),
        storage=storage,
        validation=ValidationConfig(**data.get("validation", {})),
    )
