from dataclasses import dataclass, fields
from typing import Any, Dict
import yaml


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    cleaning: Dict[str, Any]
    imputation: Dict[str, Any]
    split: Dict[str, Any]
    features: Dict[str, Any]
    model: Dict[str, Any]
    tuning: Dict[str, Any]
    output: Dict[str, Any]

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f) or {}
        return cls.from_dict(cfg)

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "Config":
        expected = [f.name for f in fields(cls)]
        missing = [name for name in expected if name not in cfg]
        if missing:
            raise ValueError(f"Config is missing sections: {missing}")
        unknown = sorted(set(cfg) - set(expected))
        if unknown:
            raise ValueError(f"Config has unknown sections: {unknown}")
        return cls(**{name: dict(cfg[name] or {}) for name in expected})
