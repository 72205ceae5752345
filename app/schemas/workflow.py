"""
Workflow definitions authored by operators.

Steps are a tagged union on `type`. Anything outside the known step and
action types fails to parse and surfaces as WorkflowConfigurationError.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.exceptions import WorkflowConfigurationError

DEFAULT_SHARED_MEDIA_TYPES = ["image", "video", "document"]


class WorkflowOption(BaseModel):
    label: str
    value: Optional[str] = None

    @property
    def stored_value(self) -> str:
        return self.value if self.value is not None else self.label


class CollectConfig(BaseModel):
    field_key: Optional[str] = None


class OptionsConfig(BaseModel):
    field_key: Optional[str] = None
    options: list[WorkflowOption] = Field(min_length=1)


class MediaConfig(BaseModel):
    media_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SHARED_MEDIA_TYPES)
    )


class _StepBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    prompt_message: Optional[str] = None
    next: Optional[str] = None


class CollectFieldStep(_StepBase):
    type: Literal["collect_field"]
    collect_config: CollectConfig = Field(default_factory=CollectConfig)

    @property
    def field_key(self) -> str:
        return self.collect_config.field_key or self.id


class ShowOptionsStep(_StepBase):
    type: Literal["show_options"]
    options_config: OptionsConfig

    @property
    def field_key(self) -> str:
        return self.options_config.field_key or self.id

    def match(self, text: str) -> Optional[WorkflowOption]:
        """Resolve a reply to an option by 1-based index or exact label."""
        raw = text.strip()
        options = self.options_config.options
        if raw.isdecimal():
            index = int(raw) - 1
            if 0 <= index < len(options):
                return options[index]
            return None
        lowered = raw.lower()
        for option in options:
            if option.label.strip().lower() == lowered:
                return option
        return None


class ShareMediaStep(_StepBase):
    type: Literal["share_media"]
    media_config: MediaConfig = Field(default_factory=MediaConfig)


class AIResponseStep(_StepBase):
    type: Literal["ai_response"]


class StartBookingStep(_StepBase):
    type: Literal["start_booking"]


WorkflowStep = Annotated[
    Union[
        CollectFieldStep,
        ShowOptionsStep,
        ShareMediaStep,
        AIResponseStep,
        StartBookingStep,
    ],
    Field(discriminator="type"),
]


class WorkflowTrigger(BaseModel):
    keywords: list[str] = Field(default_factory=list)

    def best_match_length(self, text: str) -> int:
        """Length of the longest keyword contained in text (case-insensitive), 0 if none."""
        lowered = text.lower()
        best = 0
        for keyword in self.keywords:
            needle = keyword.strip().lower()
            if needle and needle in lowered:
                best = max(best, len(needle))
        return best


class SaveToDatabaseAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["save_to_database"]
    table: Optional[str] = None


WorkflowAction = SaveToDatabaseAction


class WorkflowDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    trigger: WorkflowTrigger = Field(default_factory=WorkflowTrigger)
    steps: list[WorkflowStep] = Field(min_length=1)
    actions: list[WorkflowAction] = Field(default_factory=list)
    completion_message: Optional[str] = None

    def first_step(self):
        return self.steps[0]

    def find_step(self, step_id: Optional[str]):
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def next_step(self, step):
        """Explicit `next` when it resolves, otherwise the following step in list order."""
        if step.next:
            explicit = self.find_step(step.next)
            if explicit is not None:
                return explicit
        for index, candidate in enumerate(self.steps):
            if candidate.id == step.id:
                if index + 1 < len(self.steps):
                    return self.steps[index + 1]
                return None
        return None


def parse_workflow_definition(
    raw: Optional[dict[str, Any]], workflow_id: Any = None
) -> WorkflowDefinition:
    """Validate stored JSON into a WorkflowDefinition."""
    try:
        return WorkflowDefinition.model_validate(raw or {})
    except ValidationError as exc:
        raise WorkflowConfigurationError(
            f"Invalid workflow definition: {exc.errors()[0].get('msg', 'validation error')}",
            workflow_id=workflow_id,
        ) from exc
