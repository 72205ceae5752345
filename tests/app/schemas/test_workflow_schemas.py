"""Tests for workflow definition parsing."""

import pytest

from app.exceptions import WorkflowConfigurationError
from app.schemas.workflow import (
    CollectFieldStep,
    ShareMediaStep,
    ShowOptionsStep,
    parse_workflow_definition,
)
from tests.fixtures.workflow_fixtures import LEAD_CAPTURE_DEFINITION


def test_parse_lead_capture_definition():
    definition = parse_workflow_definition(LEAD_CAPTURE_DEFINITION)

    name, interest, catalog = definition.steps
    assert isinstance(name, CollectFieldStep)
    assert name.field_key == "customer_name"
    assert isinstance(interest, ShowOptionsStep)
    assert isinstance(catalog, ShareMediaStep)
    assert catalog.media_config.media_types == ["document"]
    assert definition.actions[0].type == "save_to_database"


def test_field_key_defaults_to_step_id():
    definition = parse_workflow_definition(
        {"steps": [{"id": "email", "type": "collect_field"}]}
    )
    assert definition.first_step().field_key == "email"


def test_share_media_default_types():
    definition = parse_workflow_definition(
        {"steps": [{"id": "gallery", "type": "share_media"}]}
    )
    assert definition.first_step().media_config.media_types == ["image", "video", "document"]


def test_next_step_prefers_explicit_then_list_order():
    definition = parse_workflow_definition(
        {
            "steps": [
                {"id": "a", "type": "collect_field", "next": "c"},
                {"id": "b", "type": "collect_field", "next": "missing"},
                {"id": "c", "type": "collect_field"},
            ]
        }
    )
    a, b, c = definition.steps
    assert definition.next_step(a).id == "c"
    assert definition.next_step(b).id == "c"
    assert definition.next_step(c) is None


def test_option_matching():
    step = parse_workflow_definition(LEAD_CAPTURE_DEFINITION).steps[1]

    assert step.match("1").stored_value == "hair"
    assert step.match(" skin ").stored_value == "Skin"
    assert step.match("3") is None
    assert step.match("Hai") is None
    assert step.match("²") is None


def test_trigger_longest_match():
    definition = parse_workflow_definition(LEAD_CAPTURE_DEFINITION)
    assert definition.trigger.best_match_length("send me the PRICE LIST") == len("price list")
    assert definition.trigger.best_match_length("hello") == 0


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {"steps": []},
        {"steps": [{"id": "x", "type": "send_sms"}]},
        {"steps": [{"id": "x", "type": "show_options", "options_config": {"options": []}}]},
        {"steps": [{"id": "x", "type": "collect_field"}], "actions": [{"type": "webhook"}]},
    ],
)
def test_invalid_definitions_raise(raw):
    with pytest.raises(WorkflowConfigurationError) as exc_info:
        parse_workflow_definition(raw, workflow_id="wf-1")
    assert exc_info.value.workflow_id == "wf-1"
