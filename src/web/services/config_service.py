from __future__ import annotations

import copy
import os
from typing import Any, Dict

import yaml


class ConfigService:
    """
    Manages layered config for the web API:
    - config/default.yaml (checked in)
    - config/config.yaml (local overrides written by the settings routes)
    """

    DEFAULT_PATH = os.path.join("config", "default.yaml")
    OVERRIDES_PATH = os.path.join("config", "config.yaml")

    @staticmethod
    def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        for k, v in (override or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                ConfigService._deep_merge(base[k], v)
            else:
                base[k] = v
        return base

    @staticmethod
    def _read_yaml(path: str) -> Dict[str, Any]:
        if not os.path.exists(path):
            return {}
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def load_default(cls) -> Dict[str, Any]:
        return cls._read_yaml(cls.DEFAULT_PATH)

    @classmethod
    def load_overrides(cls) -> Dict[str, Any]:
        return cls._read_yaml(cls.OVERRIDES_PATH)

    @classmethod
    def load_effective_config(cls) -> Dict[str, Any]:
        return cls._deep_merge(cls.load_default(), cls.load_overrides())

    @classmethod
    def save_overrides(cls, overrides: Dict[str, Any]) -> None:
        os.makedirs(os.path.dirname(cls.OVERRIDES_PATH) or ".", exist_ok=True)
        with open(cls.OVERRIDES_PATH, "w") as f:
            yaml.safe_dump(overrides or {}, f, sort_keys=False)

    @classmethod
    def update_section(cls, section: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge `values` into one section of the overrides file.

        Returns:
            The effective config after the write.
        """
        overrides = copy.deepcopy(cls.load_overrides())
        current = overrides.get(section)
        merged = dict(current) if isinstance(current, dict) else {}
        merged.update(values)
        overrides[section] = merged
        cls.save_overrides(overrides)
        return cls.load_effective_config()
