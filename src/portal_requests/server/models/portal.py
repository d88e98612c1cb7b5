"""
Pydantic models for portal configuration and portal request payloads.

PortalConfig is the single structured record stored per scope.
PortalConfigUpdate is the partial update accepted by the save endpoints:
only fields explicitly present (and not null) in the payload are merged
into the stored record.
"""

from typing import Any, Dict, List, Optional, Set

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

BUTTON_SLOTS = 5
GLOBAL_SCOPE = "global"


def normalize_scope(scope: Optional[str]) -> str:
    """Blank or missing scopes resolve to the global scope."""
    if scope is None or not scope.strip():
        return GLOBAL_SCOPE
    return scope.strip()


class ButtonConfig(BaseModel):
    """A configured portal button."""

    label: str
    url: str


class PortalConfig(BaseModel):
    """Stored configuration for one scope."""

    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = None
    use_custom_query: bool = Field(default=False, alias="useCustomQuery")
    buttons: List[Optional[ButtonConfig]] = Field(
        default_factory=lambda: [None] * BUTTON_SLOTS
    )
    linked_spaces: Set[str] = Field(default_factory=set, alias="linkedSpaces")

    @field_validator("buttons")
    @classmethod
    def _pad_button_slots(
        cls, value: List[Optional[ButtonConfig]]
    ) -> List[Optional[ButtonConfig]]:
        slots = list(value[:BUTTON_SLOTS])
        slots.extend([None] * (BUTTON_SLOTS - len(slots)))
        return slots

    @field_serializer("linked_spaces")
    def _serialize_spaces(self, value: Set[str]) -> List[str]:
        return sorted(value)

    def configured_buttons(self) -> List[Dict[str, Any]]:
        """Configured buttons in slot order, with 1-based slot numbers."""
        return [
            {"slot": index, "label": button.label, "url": button.url}
            for index, button in enumerate(self.buttons, start=1)
            if button is not None
        ]


class ButtonSlotUpdate(BaseModel):
    """
    Update for one button slot.

    Without an explicit slot the entry addresses the slot matching its
    position in the submitted list. Blank label and url clear the slot.
    """

    slot: Optional[int] = None
    label: Optional[str] = None
    url: Optional[str] = None


def _collect_flat_buttons(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fold button<N>Label / button<N>Url keys into a buttons list."""
    flat_updates = []
    data = dict(data)
    for slot in range(1, BUTTON_SLOTS + 1):
        label_key = f"button{slot}Label"
        url_key = f"button{slot}Url"
        if label_key in data or url_key in data:
            flat_updates.append(
                {
                    "slot": slot,
                    "label": data.pop(label_key, None),
                    "url": data.pop(url_key, None),
                }
            )

    if flat_updates:
        existing = data.get("buttons") or []
        data["buttons"] = list(existing) + flat_updates
    return data


class PortalConfigUpdate(BaseModel):
    """Partial configuration update for one scope."""

    model_config = ConfigDict(populate_by_name=True)

    project_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("projectKey", "project_key")
    )
    query: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("query", "jql")
    )
    use_custom_query: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices(
            "useCustomQuery", "useCustomJql", "use_custom_query"
        ),
    )
    buttons: Optional[List[ButtonSlotUpdate]] = None
    linked_spaces: Optional[List[str]] = Field(
        default=None, validation_alias=AliasChoices("linkedSpaces", "linked_spaces")
    )

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_buttons(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return _collect_flat_buttons(data)
        return data

    def is_set(self, field_name: str) -> bool:
        """True when the payload carried a non-null value for the field."""
        return (
            field_name in self.model_fields_set
            and getattr(self, field_name) is not None
        )


class ButtonsUpdateRequest(BaseModel):
    """Payload of POST /settings/buttons."""

    project_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("projectKey", "project_key")
    )
    buttons: List[ButtonSlotUpdate]


class ValidateJqlRequest(BaseModel):
    """
    Payload of POST /settings/validate-jql.

    jql is accepted as any JSON value so a wrong type is reported as an
    invalid query rather than a rejected request.
    """

    jql: Any = None

    def candidate_error(self) -> Optional[str]:
        if self.jql is None or isinstance(self.jql, str):
            return None
        return "jql must be a string"


class ServiceDeskRequest(BaseModel):
    """One issue as presented to the portal."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    summary: str = ""
    reporter: str = "Unknown"
    created: str = ""
    status: str = "Unknown"
    status_category: str = Field(default="unknown", alias="statusCategory")
