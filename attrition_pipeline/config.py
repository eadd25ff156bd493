"""Pipeline configuration and environment setup."""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from attrition_pipeline.utils.io import load_toml_config

logger = logging.getLogger(__name__)

type ConfigDict = dict[str, str | int | bool | list[str]]

OUTPUT_FORMATS = ("csv", "parquet", "json")
YAML_CONFIG_NAME = "attrition.yaml"


@dataclass(frozen=True)
class PathsConfig:
    data_dir: Path
    output_dir: Path


@dataclass(frozen=True)
class PipelineConfig:
    paths: PathsConfig
    output_format: str = "csv"
    include_unsurveyed: bool = True
    strict_dimensions: bool = False
    workers: int = 1
    kpis: list[str] = field(default_factory=list)


def load_pipeline_config(
    env: str = "production",
    overrides: ConfigDict | None = None,
) -> PipelineConfig:
    """Build the config for an environment, then layer file and caller overrides."""
    match env:
        case "production":
            paths = PathsConfig(
                data_dir=Path("data/raw/hr/attrition"),
                output_dir=Path("data/output/hr/attrition"),
            )
            config = PipelineConfig(paths=paths, workers=4)
        case "staging":
            paths = PathsConfig(
                data_dir=Path("data/staging/hr/attrition"),
                output_dir=Path("data/staging/output/hr/attrition"),
            )
            config = PipelineConfig(paths=paths, workers=2)
        case "development" | "test":
            paths = PathsConfig(
                data_dir=Path("data/dev/attrition"),
                output_dir=Path("output/attrition"),
            )
            config = PipelineConfig(paths=paths, strict_dimensions=env == "test")
        case other:
            raise ValueError(f"Unknown environment: {other}")

    settings = {**get_env_config(), **(overrides or {})}
    return apply_overrides(config, settings)


def apply_overrides(config: PipelineConfig, settings: ConfigDict) -> PipelineConfig:
    """Return a copy of ``config`` with recognised settings applied."""
    paths = config.paths
    updates = {}

    for key, value in settings.items():
        match key:
            case "data_dir":
                paths = replace(paths, data_dir=Path(value))
            case "output_dir":
                paths = replace(paths, output_dir=Path(value))
            case "output_format":
                if value not in OUTPUT_FORMATS:
                    raise ValueError(f"Unsupported output format: {value}")
                updates["output_format"] = value
            case "include_unsurveyed" | "strict_dimensions":
                if not isinstance(value, bool):
                    raise ValueError(f"{key} must be true or false, got {value!r}")
                updates[key] = value
            case "workers":
                if int(value) < 1:
                    raise ValueError(f"workers must be >= 1, got {value}")
                updates["workers"] = int(value)
            case "kpis":
                updates["kpis"] = list(value)
            case unknown:
                logger.warning("Ignoring unknown config setting: %s", unknown)

    return replace(config, paths=paths, **updates)


def get_env_config() -> ConfigDict:
    """Read overrides from ./attrition.yaml, falling back to pyproject.toml."""
    yaml_path = Path.cwd() / YAML_CONFIG_NAME
    if yaml_path.exists():
        with open(yaml_path) as f:
            return yaml.safe_load(f) or {}

    pyproject = Path(__file__).parent.parent / "pyproject.toml"
    if not pyproject.exists():
        return {}
    data = load_toml_config(pyproject)
    return data.get("tool", {}).get("attrition_pipeline", {})
