"""Data models for compiled Intent Specs, their steps, and their parameters."""

import json
from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml


class Provenance(StrEnum):
    """Which generator produced a spec."""

    RULE_BASED = "rule_based"
    MODEL_ASSISTED = "model_assisted"


@dataclass(frozen=True)
class Param:
    """A named variable substituted at replay time."""

    name: str
    description: str = ""
    default: str | None = None

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "default": self.default,
        }

    @classmethod
    def from_dict(cls, d: dict | str) -> "Param":
        """Create from dictionary (a bare string is taken as the name)."""
        if isinstance(d, str):
            return cls(name=d)
        default = d.get("default", d.get("default_value"))
        return cls(
            name=str(d["name"]),
            description=str(d.get("description") or ""),
            default=None if default is None else str(default),
        )


@dataclass(frozen=True)
class Step:
    """One replay instruction.

    ``snippet`` is a literal Playwright statement in which every Param value
    appears only as its ``{{NAME}}`` placeholder.
    """

    name: str
    action: str
    selector: str | None
    instruction: str
    snippet: str

    def text_fields(self) -> tuple[str, ...]:
        """All free-text fields that could carry a literal value."""
        return (self.name, self.selector or "", self.instruction, self.snippet)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "action": self.action,
            "selector": self.selector,
            "instruction": self.instruction,
            "snippet": self.snippet,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Step":
        # Accept the field spellings the analysis service tends to use
        instruction = d.get("instruction") or d.get("ai_instruction") or d.get("aiInstruction") or ""
        selector = d.get("selector")
        return cls(
            name=str(d.get("name") or ""),
            action=str(d.get("action") or d.get("type") or ""),
            selector=None if selector is None else str(selector),
            instruction=str(instruction),
            snippet=str(d.get("snippet") or ""),
        )


@dataclass(frozen=True)
class IntentSpec:
    """A compiled, parameterized automation specification.

    Created once by the coordinator and never mutated afterwards. Use
    ``replace`` to derive a corrected copy.
    """

    name: str
    description: str
    url: str
    steps: tuple[Step, ...] = ()
    params: tuple[Param, ...] = ()
    provenance: Provenance = Provenance.RULE_BASED
    # Why the preferred generator was skipped; diagnostic only
    fallback_reason: str | None = field(default=None, compare=False)

    @property
    def param_names(self) -> list[str]:
        return [p.name for p in self.params]

    def replace(self, **changes: Any) -> "IntentSpec":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert to dictionary (for JSON serialization)."""
        return {
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "params": [p.to_dict() for p in self.params],
            "steps": [s.to_dict() for s in self.steps],
            "provenance": self.provenance.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, d: dict) -> "IntentSpec":
        """Create from dictionary."""
        try:
            provenance = Provenance(d.get("provenance", Provenance.RULE_BASED))
        except ValueError:
            provenance = Provenance.MODEL_ASSISTED
        return cls(
            name=str(d.get("name") or "Untitled Intent Spec"),
            description=str(d.get("description") or ""),
            url=str(d.get("url") or ""),
            steps=tuple(Step.from_dict(s) for s in d.get("steps", [])),
            params=tuple(Param.from_dict(p) for p in d.get("params", [])),
            provenance=provenance,
        )

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)

    def save(self, path: Path) -> Path:
        """Save spec to file (YAML or JSON based on extension)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                f.write(self.to_yaml())
            else:
                f.write(self.to_json())

        return path

    @classmethod
    def load(cls, path: Path) -> "IntentSpec":
        """Load spec from file (supports both .yaml and .json)."""
        path = Path(path)

        with open(path, encoding="utf-8") as f:
            content = f.read()

        if path.suffix in (".yaml", ".yml"):
            return cls.from_dict(yaml.safe_load(content) or {})
        return cls.from_dict(json.loads(content))
