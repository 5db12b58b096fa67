"""Workflow and step record models.

Steps are a tagged union keyed by ``step_type``: every variant carries the
ordering keys and behavioural flags, while approver, condition and action
details only exist on the variant they belong to.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Mapping, Optional, Union, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationInfo,
    field_validator,
    model_validator,
)

StepType = Literal["approval", "notification", "condition", "action", "delay"]
ApproverType = Literal["user", "role", "department", "manager", "custom"]
WorkflowType = Literal["approval", "notification", "automation", "custom"]

_APPROVER_TYPES = frozenset(get_args(ApproverType))

# Keys that fall back to their field default when a row carries NULL.
_DEFAULTED_STEP_KEYS = (
    "step_name",
    "step_number",
    "sequence_group",
    "is_parallel",
    "is_required",
    "escalation_enabled",
)


def new_id() -> str:
    return str(uuid.uuid4())


# Ordering keys and hour counts are stored in 32-bit INTEGER columns.
INT_MIN = -(2**31)
INT_MAX = 2**31 - 1

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "off", "0", ""})


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        try:
            result = int(value)
        except (ValueError, OverflowError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        try:
            result = int(text)
        except ValueError:
            try:
                result = int(float(text))
            except (ValueError, OverflowError):
                return None
    else:
        return None
    return max(INT_MIN, min(INT_MAX, result))


def coerce_int(value: Any) -> int:
    """Best-effort integer conversion; anything unusable becomes ``0``.

    Results are clamped to the signed 32-bit range so every backend can
    store them.
    """
    result = _to_int(value)
    return 0 if result is None else result


def coerce_optional_int(value: Any) -> Optional[int]:
    """Like :func:`coerce_int` but unusable values become ``None``."""
    if value is None:
        return None
    return _to_int(value)


def coerce_flag(value: Any, default: bool) -> bool:
    """Interpret ``value`` as a boolean, falling back to ``default``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and math.isnan(value):
        return default
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return default


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


class BaseStep(BaseModel):
    """Fields shared by every step variant."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    step_name: str = ""
    step_number: int = 0
    sequence_group: int = 0
    is_parallel: bool = False
    is_required: bool = True
    escalation_enabled: bool = False
    escalation_after_hours: Optional[int] = None
    timeout_hours: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {
                key: value
                for key, value in data.items()
                if not (key in _DEFAULTED_STEP_KEYS and value is None)
            }
        return data

    @field_validator("step_number", "sequence_group", mode="before")
    @classmethod
    def _lenient_ordering_key(cls, value: Any) -> int:
        return coerce_int(value)

    @field_validator("escalation_after_hours", "timeout_hours", mode="before")
    @classmethod
    def _lenient_hours(cls, value: Any) -> Optional[int]:
        return coerce_optional_int(value)

    @field_validator("is_parallel", "is_required", "escalation_enabled", mode="before")
    @classmethod
    def _lenient_flag(cls, value: Any, info: ValidationInfo) -> bool:
        return coerce_flag(value, cls.model_fields[info.field_name].default)

    @field_validator("step_name", mode="before")
    @classmethod
    def _lenient_name(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("notes", mode="before")
    @classmethod
    def _lenient_notes(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @property
    def display_name(self) -> str:
        return self.step_name or "Unnamed Step"


class ApprovalStep(BaseStep):
    step_type: Literal["approval"] = "approval"
    approver_type: ApproverType = "user"
    approver_id: Optional[str] = None
    approver_role: Optional[str] = None
    approver_department_id: Optional[str] = None

    @field_validator("approver_type", mode="before")
    @classmethod
    def _known_approver_type(cls, value: Any) -> str:
        if isinstance(value, str) and value in _APPROVER_TYPES:
            return value
        return "user"

    @field_validator(
        "approver_id", "approver_role", "approver_department_id", mode="before"
    )
    @classmethod
    def _lenient_reference(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class NotificationStep(BaseStep):
    step_type: Literal["notification"] = "notification"


class ConditionStep(BaseStep):
    step_type: Literal["condition"] = "condition"
    condition_expression: Optional[str] = None

    @field_validator("condition_expression", mode="before")
    @classmethod
    def _lenient_expression(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class ActionStep(BaseStep):
    step_type: Literal["action"] = "action"
    action_config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("action_config", mode="before")
    @classmethod
    def _lenient_config(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, Mapping):
            return {}
        return {str(key): item for key, item in value.items()}


class DelayStep(BaseStep):
    step_type: Literal["delay"] = "delay"


StepRecord = Annotated[
    Union[ApprovalStep, NotificationStep, ConditionStep, ActionStep, DelayStep],
    Field(discriminator="step_type"),
]

_STEP_ADAPTER: TypeAdapter[StepRecord] = TypeAdapter(StepRecord)


def parse_step(data: Mapping[str, Any] | BaseStep) -> StepRecord:
    """Build the step variant matching ``data['step_type']``.

    Raises:
        ValueError: If ``step_type`` is missing or not a known step type.
    """
    if isinstance(data, BaseStep):
        return data  # type: ignore[return-value]
    return _STEP_ADAPTER.validate_python(dict(data))


class StepPatch(BaseModel):
    """Partial update for a step; only explicitly set fields are applied."""

    model_config = ConfigDict(extra="ignore")

    step_name: Optional[str] = None
    step_type: Optional[StepType] = None
    step_number: Optional[int] = None
    sequence_group: Optional[int] = None
    is_parallel: Optional[bool] = None
    is_required: Optional[bool] = None
    approver_type: Optional[ApproverType] = None
    approver_id: Optional[str] = None
    approver_role: Optional[str] = None
    approver_department_id: Optional[str] = None
    condition_expression: Optional[str] = None
    action_config: Optional[dict[str, Any]] = None
    escalation_enabled: Optional[bool] = None
    escalation_after_hours: Optional[int] = None
    timeout_hours: Optional[int] = None
    notes: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def apply_step_patch(step: StepRecord, patch: StepPatch) -> StepRecord:
    """Return a new step with ``patch`` merged over ``step``."""
    changes = patch.changes()
    if not changes:
        raise ValueError("No valid fields to update")
    merged = step.model_dump()
    merged.update(changes)
    merged["id"] = step.id
    return parse_step(merged)


class Workflow(BaseModel):
    """A workflow definition owning an ordered set of steps."""

    id: str = Field(default_factory=new_id)
    name: str
    description: Optional[str] = None
    workflow_type: WorkflowType = "approval"
    entity_type: str = ""
    trigger_event: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WorkflowPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    workflow_type: Optional[WorkflowType] = None
    entity_type: Optional[str] = None
    trigger_event: Optional[str] = None
    is_active: Optional[bool] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def apply_workflow_patch(workflow: Workflow, patch: WorkflowPatch) -> Workflow:
    changes = patch.changes()
    if not changes:
        raise ValueError("No valid fields to update")
    return workflow.model_copy(update=changes)
