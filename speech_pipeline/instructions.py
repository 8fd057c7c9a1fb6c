"""
Seed instructions for new conversations.

A conversation starts with one system message. Unless the caller supplies its
own base context, the text comes from a scenario file:

- Scenarios are stored as YAML (preferred) or JSON under scenarios/.
- PyYAML's safe_load parses both formats.
- Scenario selection: explicit name, then CONVERSATION_SCENARIO, then "default".
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from conversation_api.store import DEFAULT_BASE_CONTEXT


def _get_scenarios_dir() -> Path:
    return Path(__file__).parent / "scenarios"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Scenario file {path} must contain a mapping at top-level")
        return data


def load_scenario(scenario_name: str) -> Dict[str, Any]:
    """
    Load scenario configuration from YAML or JSON file.

    Resolution order:
    1) <name>.yaml / <name>.yml / <name>.json
    2) default.yaml / default.yml / default.json
    3) hardcoded default fallback
    """
    scenarios_dir = _get_scenarios_dir()

    for name in (scenario_name, "default"):
        for suffix in (".yaml", ".yml", ".json"):
            candidate = scenarios_dir / f"{name}{suffix}"
            if candidate.exists():
                return _load_file(candidate)

    return {
        "name": "default",
        "base_context": DEFAULT_BASE_CONTEXT,
    }


def get_scenario(name: Optional[str] = None) -> Dict[str, Any]:
    scenario_name = name or os.getenv("CONVERSATION_SCENARIO", "default")
    return load_scenario(scenario_name)


def get_base_context(name: Optional[str] = None) -> str:
    """
    Seed system instruction for a new conversation.

    Args:
        name: Scenario name; falls back to CONVERSATION_SCENARIO, then "default"

    Returns:
        Instruction text (never empty)
    """
    scenario = get_scenario(name)
    base_context = str(scenario.get("base_context") or "").strip()
    return base_context or DEFAULT_BASE_CONTEXT
