from __future__ import annotations

from pathlib import Path
from typing import Dict
import copy
import yaml

DEFAULT_CONFIG: Dict[str, object] = {
    "store": "json",
    "store_modules": {
        "json": "finance_flow.stores.json_store.JsonStore",
        "sqlite": "finance_flow.stores.sqlite_store.SQLiteStore",
        "mirrored": "finance_flow.stores.mirrored.MirroredStore",
    },
    "loader_modules": {
        "csv": "finance_flow.loaders.csv_loader.CSVLoader",
    },
    "output_modules": {
        "csv": "finance_flow.outputs.csv_output.CSVOutput",
        "json": "finance_flow.outputs.json_output.JSONOutput",
    },
    "data_path": "finance_flow.json",
    "db_path": "finance_flow.db",
    "output_dir": "./data",
    "llm": {
        "provider": "gemini",
        "model": None,
        "fallback_model": None,
        "timeout": 20,
    },
    "advice": {
        "min_transactions": 5,
        "sample_size": 50,
    },
    "categories": {},
    "taxonomy": {},
}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged or merged[key] is None:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    """Read a YAML config file over the defaults; a missing file yields the defaults."""
    if path is None or not Path(path).exists():
        return copy.deepcopy(DEFAULT_CONFIG)
    with Path(path).open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return _merge_defaults(data, DEFAULT_CONFIG)


def save_config(config: Dict[str, object], path: str | Path) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config, fp, sort_keys=False)
