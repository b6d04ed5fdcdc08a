"""Trigger and log-source configuration models.

Raw configuration arrives as loosely-typed dicts (pattern items may be
bare strings or ``{"syntax", "params"}`` objects, counts may be strings,
sources are comma-separated). Everything is normalized here, once.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TERMINAL_ACTIONS = frozenset(
    {"@script", "@Script", "@recovery", "@notify", "@popup", "@suspend", "@resume"}
)


class StepType(str, Enum):
    REGEX = "regex"
    DELAY = "delay"


def _coerce_count(value: Any, *, default: int) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return default
    return count if count >= 1 else default


def _split_csv(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return [item.strip() for item in items if item and item.strip()]


class PatternItem(BaseModel):
    """One trigger pattern with optional numeric post-conditions."""

    model_config = ConfigDict(extra="ignore")

    syntax: str = ""
    params: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if data is None:
            return {"syntax": ""}
        if isinstance(data, str):
            return {"syntax": data}
        return data


class Step(BaseModel):
    """One stage of a trigger recipe."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    type: str = StepType.REGEX.value
    trigger: list[PatternItem] = Field(default_factory=list)
    duration: str | None = None
    times: int = 1
    next: str = ""
    script: dict[str, Any] | None = None
    detail: dict[str, Any] | None = None
    suspend: list[str] = Field(default_factory=list)
    resume: list[str] = Field(default_factory=list)

    @field_validator("times", mode="before")
    @classmethod
    def _times(cls, value: Any) -> int:
        return _coerce_count(value, default=1)

    @field_validator("trigger", mode="before")
    @classmethod
    def _trigger(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, dict)):
            return [value]
        return value

    @field_validator("name", "next", "type", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("duration", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("suspend", "resume", mode="before")
    @classmethod
    def _names(cls, value: Any) -> list[str]:
        return _split_csv(value)

    @property
    def is_delay(self) -> bool:
        return self.type == StepType.DELAY.value

    @property
    def patterns(self) -> list[str]:
        return [item.syntax for item in self.trigger if item.syntax]

    @property
    def has_terminal_next(self) -> bool:
        return self.next in TERMINAL_ACTIONS


class Limitation(BaseModel):
    """Allow at most `times` firings within `duration`."""

    times: int | None = None
    duration: str | None = None

    @field_validator("times", mode="before")
    @classmethod
    def _times(cls, value: Any) -> int | None:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class TriggerConfig(BaseModel):
    """A trigger definition: recipe, optional class and rate limitation."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    source: list[str] = Field(default_factory=list)
    recipe: list[Step] = Field(default_factory=list)
    limitation: Limitation | None = None
    trigger_class: str | None = Field(default=None, alias="class")

    @field_validator("source", mode="before")
    @classmethod
    def _source(cls, value: Any) -> list[str]:
        return _split_csv(value)

    @field_validator("recipe", mode="before")
    @classmethod
    def _recipe(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _default_step_names(self) -> TriggerConfig:
        for idx, step in enumerate(self.recipe):
            if not step.name:
                step.name = f"Step_{idx + 1}"
        return self

    @property
    def is_multi(self) -> bool:
        return (self.trigger_class or "").upper() == "MULTI"

    @property
    def has_limitation(self) -> bool:
        return self.limitation is not None and bool(self.limitation.duration)

    def step_index(self, name: str) -> int | None:
        """Index of the first step called `name`, or None."""
        if not name:
            return None
        for idx, step in enumerate(self.recipe):
            if step.name == name:
                return idx
        return None


class LogSourceConfig(BaseModel):
    """A log source definition (only the fields the text engine reads)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    directory: str = ""
    prefix: str = ""
    suffix: str = ""
    wildcard: str = ""
    exclude_suffix: list[str] = Field(default_factory=list)
    date_subdir_format: str = ""

    start_pattern: str = ""
    end_pattern: str = ""
    line_count: int | None = None
    priority: str = "count"

    path_pattern: str = Field(default="", alias="pathPattern")
    append_pos: int = Field(default=0, alias="appendPos")
    append_format: str = Field(default="", alias="appendFormat")

    log_time_pattern: str = ""
    log_time_format: str = ""

    line_group_count: int = 1
    line_group_pattern: str = ""

    @field_validator(
        "directory",
        "prefix",
        "suffix",
        "wildcard",
        "date_subdir_format",
        "start_pattern",
        "end_pattern",
        "path_pattern",
        "append_format",
        "log_time_pattern",
        "log_time_format",
        "line_group_pattern",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: Any) -> str:
        return str(value).strip().lower() if value else "count"

    @field_validator("exclude_suffix", mode="before")
    @classmethod
    def _exclude(cls, value: Any) -> list[str]:
        return _split_csv(value)

    @field_validator("line_count", mode="before")
    @classmethod
    def _line_count(cls, value: Any) -> int | None:
        if value is None or value == "":
            return None
        try:
            count = int(value)
        except (TypeError, ValueError):
            return None
        return count if count > 0 else None

    @field_validator("append_pos", mode="before")
    @classmethod
    def _append_pos(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("line_group_count", mode="before")
    @classmethod
    def _group_count(cls, value: Any) -> int:
        return _coerce_count(value, default=1)
