"""
Site / warehouse settings layering.

A site defines the template: an ordered ``key -> value`` map of string
settings.  Each warehouse under the site carries an override layer whose key
set is fixed by the template when the warehouse is created; only the values
change afterwards.  ``effective()`` merges the two layers.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from movement_kernel.exceptions import UnknownSettingKeyError


def _freeze(values: Mapping[str, str]) -> MappingProxyType:
    return MappingProxyType({str(k): str(v) for k, v in values.items()})


@dataclass(frozen=True)
class SettingsTemplate(Mapping[str, str]):
    """Site-level settings, in declaration order."""

    entries: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", _freeze(self.entries))

    @classmethod
    def from_json(cls, blob: str | None) -> SettingsTemplate:
        """Parse a legacy JSON settings blob (object of scalars).

        Raises:
            ValueError: the blob is not a JSON object.
        """
        if not blob:
            return cls()
        data = json.loads(blob)
        if not isinstance(data, dict):
            raise ValueError("Settings blob must be a JSON object")
        return cls({k: "" if v is None else str(v) for k, v in data.items()})

    def __getitem__(self, key: str) -> str:
        return self.entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def for_warehouse(self) -> WarehouseSettings:
        """New override layer keyed by this template, with no overrides yet."""
        return WarehouseSettings(template=self)


@dataclass(frozen=True)
class WarehouseSettings:
    """Warehouse override layer on top of a site template."""

    template: SettingsTemplate
    overrides: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key in self.overrides:
            if key not in self.template:
                raise UnknownSettingKeyError(key)
        object.__setattr__(self, "overrides", _freeze(self.overrides))

    def with_value(self, key: str, value: str) -> WarehouseSettings:
        """Return a copy with ``key`` overridden."""
        if key not in self.template:
            raise UnknownSettingKeyError(key)
        return WarehouseSettings(self.template, {**self.overrides, key: value})

    def without_override(self, key: str) -> WarehouseSettings:
        """Return a copy where ``key`` falls back to the template value."""
        if key not in self.template:
            raise UnknownSettingKeyError(key)
        return WarehouseSettings(
            self.template, {k: v for k, v in self.overrides.items() if k != key}
        )

    def get(self, key: str) -> str:
        if key not in self.template:
            raise UnknownSettingKeyError(key)
        return self.overrides.get(key, self.template[key])

    def effective(self) -> dict[str, str]:
        """Merged view in template key order."""
        return {key: self.overrides.get(key, value) for key, value in self.template.items()}
