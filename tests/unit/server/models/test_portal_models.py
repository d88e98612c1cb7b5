"""
Tests for portal configuration models and payload parsing.
"""

import json

import pytest
from pydantic import ValidationError

from portal_requests.server.models.portal import (
    BUTTON_SLOTS,
    ButtonConfig,
    PortalConfig,
    PortalConfigUpdate,
    ServiceDeskRequest,
    ValidateJqlRequest,
    normalize_scope,
)


class TestNormalizeScope:
    @pytest.mark.parametrize("scope", [None, "", "   "])
    def test_blank_scopes_are_global(self, scope):
        assert normalize_scope(scope) == "global"

    def test_project_scope_is_trimmed(self):
        assert normalize_scope("  PROJ ") == "PROJ"


class TestPortalConfig:
    """Stored record shape."""

    def test_defaults(self):
        config = PortalConfig()

        assert config.query is None
        assert config.use_custom_query is False
        assert config.buttons == [None] * BUTTON_SLOTS
        assert config.linked_spaces == set()

    def test_buttons_padded_to_five_slots(self):
        config = PortalConfig(buttons=[ButtonConfig(label="Help", url="https://help")])

        assert len(config.buttons) == BUTTON_SLOTS
        assert config.buttons[0].label == "Help"
        assert config.buttons[1:] == [None] * 4

    def test_configured_buttons_reports_slot_numbers(self):
        config = PortalConfig(
            buttons=[None, None, ButtonConfig(label="Docs", url="https://docs")]
        )

        assert config.configured_buttons() == [
            {"slot": 3, "label": "Docs", "url": "https://docs"}
        ]

    def test_json_uses_camel_case_and_sorted_spaces(self):
        config = PortalConfig(
            query="project = X",
            use_custom_query=True,
            linked_spaces={"KB", "DOCS"},
        )

        stored = json.loads(config.model_dump_json(by_alias=True))

        assert stored["useCustomQuery"] is True
        assert stored["linkedSpaces"] == ["DOCS", "KB"]
        assert PortalConfig.model_validate_json(config.model_dump_json(by_alias=True)) == config


class TestPortalConfigUpdate:
    """Partial update payload parsing."""

    def test_only_supplied_fields_are_set(self):
        update = PortalConfigUpdate.model_validate({"jql": "project = X"})

        assert update.is_set("query")
        assert not update.is_set("use_custom_query")
        assert not update.is_set("buttons")
        assert not update.is_set("linked_spaces")

    def test_null_fields_count_as_omitted(self):
        update = PortalConfigUpdate.model_validate({"query": None, "useCustomQuery": None})

        assert not update.is_set("query")
        assert not update.is_set("use_custom_query")

    @pytest.mark.parametrize("key", ["useCustomQuery", "useCustomJql", "use_custom_query"])
    def test_use_custom_query_aliases(self, key):
        update = PortalConfigUpdate.model_validate({key: True})
        assert update.use_custom_query is True

    def test_flat_button_fields_become_slot_updates(self):
        update = PortalConfigUpdate.model_validate(
            {
                "projectKey": "PROJ",
                "button2Label": "Portal",
                "button2Url": "https://portal",
                "button4Label": "",
                "button4Url": "",
            }
        )

        assert update.project_key == "PROJ"
        assert [(b.slot, b.label, b.url) for b in update.buttons] == [
            (2, "Portal", "https://portal"),
            (4, "", ""),
        ]

    def test_flat_button_with_only_label_keeps_url_missing(self):
        update = PortalConfigUpdate.model_validate({"button1Label": "Only label"})

        assert update.buttons[0].slot == 1
        assert update.buttons[0].url is None

    def test_wrong_type_rejected(self):
        with pytest.raises(ValidationError):
            PortalConfigUpdate.model_validate({"linkedSpaces": "DOCS"})


class TestServiceDeskRequest:
    def test_dump_uses_status_category_alias(self):
        item = ServiceDeskRequest(key="PROJ-1", status_category="done")

        dumped = item.model_dump(by_alias=True)

        assert dumped == {
            "key": "PROJ-1",
            "summary": "",
            "reporter": "Unknown",
            "created": "",
            "status": "Unknown",
            "statusCategory": "done",
        }


class TestValidateJqlRequest:
    """Any JSON value is accepted for jql; wrong types are reported, not rejected."""

    @pytest.mark.parametrize("jql", [None, "", "project = PROJ"])
    def test_string_or_missing_has_no_error(self, jql):
        assert ValidateJqlRequest(jql=jql).candidate_error() is None

    @pytest.mark.parametrize("jql", [123, ["project = PROJ"], False])
    def test_other_types_report_error(self, jql):
        payload = ValidateJqlRequest.model_validate({"jql": jql})

        assert payload.candidate_error() == "jql must be a string"
