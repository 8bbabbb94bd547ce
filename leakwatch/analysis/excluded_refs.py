#=============================================================================
# File        : leakwatch/analysis/excluded_refs.py
# Project     : LeakWatch v1.0
# Component   : Excluded References - Known False Positive Patterns
# Description : Ordered reference patterns the analyzer treats as non-leaks
#               • Instance field, module global and whole-type rules
#               • "Always exclude" rules that cut a path entirely
#               • Serializable for the analysis process boundary
# Author      : LeakWatch Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, Dataclasses
# Standards   : PEP 8, Type Hints, Immutable Data Structures
# Created     : 2025-09-02
# Modified    : 2025-09-02 (Initial creation)
# Dependencies: dataclasses, typing
# License     : MIT License
# Copyright   : © 2025 LeakWatch Contributors. All rights reserved.
#=============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Exclusion kinds, matched against snapshot edges
INSTANCE_FIELD = "field"
STATIC_FIELD = "static"
TYPE = "type"

_KINDS = (INSTANCE_FIELD, STATIC_FIELD, TYPE)


@dataclass(frozen=True)
class Exclusion:
    """
    One reference pattern.

    ``owner`` is a fully qualified type name for INSTANCE_FIELD and TYPE
    rules, and a module name for STATIC_FIELD rules.
    """
    kind: str
    owner: str
    name: Optional[str] = None
    reason: str = ""
    always_exclude: bool = False

    def __post_init__(self):
        if self.kind not in _KINDS:
            raise ValueError(f"Unknown exclusion kind '{self.kind}'")
        if self.kind != TYPE and not self.name:
            raise ValueError(f"{self.kind} exclusion on '{self.owner}' needs a name")

    def matches(self, edge: Dict[str, Any], holder: Dict[str, Any]) -> bool:
        """Whether the snapshot edge (held by node ``holder``) is covered."""
        if self.kind == TYPE:
            return holder.get("type") == self.owner
        if self.kind == STATIC_FIELD:
            return (edge.get("kind") == STATIC_FIELD
                    and holder.get("module") == self.owner
                    and edge.get("name") == self.name)
        return (edge.get("kind") == INSTANCE_FIELD
                and holder.get("type") == self.owner
                and edge.get("name") == self.name)

    def describe(self) -> str:
        target = self.owner if self.kind == TYPE else f"{self.owner}.{self.name}"
        suffix = f" ({self.reason})" if self.reason else ""
        return f"{self.kind} {target}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'owner': self.owner,
            'name': self.name,
            'reason': self.reason,
            'always_exclude': self.always_exclude,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Exclusion":
        return cls(
            kind=data['kind'],
            owner=data['owner'],
            name=data.get('name'),
            reason=data.get('reason', ""),
            always_exclude=bool(data.get('always_exclude', False)),
        )


@dataclass(frozen=True)
class ExcludedRefs:
    """Ordered, immutable set of exclusions; first match wins."""
    exclusions: Tuple[Exclusion, ...] = field(default_factory=tuple)

    def match(self, edge: Dict[str, Any], holder: Dict[str, Any]) -> Optional[Exclusion]:
        for exclusion in self.exclusions:
            if exclusion.matches(edge, holder):
                return exclusion
        return None

    def __len__(self) -> int:
        return len(self.exclusions)

    def to_dict(self) -> Dict[str, Any]:
        return {'exclusions': [e.to_dict() for e in self.exclusions]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExcludedRefs":
        return cls(tuple(Exclusion.from_dict(e) for e in data.get('exclusions', [])))

    @staticmethod
    def builder() -> "ExcludedRefsBuilder":
        return ExcludedRefsBuilder()

    @staticmethod
    def python_defaults() -> "ExcludedRefs":
        """Interpreter-level references that hold objects without being leaks."""
        builder = ExcludedRefsBuilder()
        for name in ("last_value", "last_exc", "last_traceback"):
            builder.static_field(
                "sys", name,
                reason="The interactive interpreter keeps the last unhandled exception alive.")
        builder.static_field(
            "builtins", "_",
            reason="The interactive interpreter stores the last expression result in builtins._")
        builder.type(
            "functools._lru_cache_wrapper",
            reason="lru_cache keeps recent call arguments until they are evicted.")
        return builder.build()


class ExcludedRefsBuilder:
    """Collects exclusions in declaration order."""

    def __init__(self) -> None:
        self._exclusions: List[Exclusion] = []

    def instance_field(self, type_name: str, field_name: str, reason: str = "",
                       always_exclude: bool = False) -> "ExcludedRefsBuilder":
        self._exclusions.append(Exclusion(INSTANCE_FIELD, type_name, field_name, reason, always_exclude))
        return self

    def static_field(self, module_name: str, name: str, reason: str = "",
                     always_exclude: bool = False) -> "ExcludedRefsBuilder":
        self._exclusions.append(Exclusion(STATIC_FIELD, module_name, name, reason, always_exclude))
        return self

    def type(self, type_name: str, reason: str = "",
             always_exclude: bool = False) -> "ExcludedRefsBuilder":
        self._exclusions.append(Exclusion(TYPE, type_name, None, reason, always_exclude))
        return self

    def extend(self, excluded_refs: ExcludedRefs) -> "ExcludedRefsBuilder":
        self._exclusions.extend(excluded_refs.exclusions)
        return self

    def build(self) -> ExcludedRefs:
        return ExcludedRefs(tuple(self._exclusions))
