"""Fixtures for operator-authored workflows."""

from datetime import datetime, timedelta, timezone

import pytest

from app.models.workflow import Workflow

LEAD_CAPTURE_DEFINITION = {
    "trigger": {"keywords": ["price list", "price"]},
    "steps": [
        {
            "id": "name",
            "type": "collect_field",
            "prompt_message": "What's your name?",
            "collect_config": {"field_key": "customer_name"},
        },
        {
            "id": "interest",
            "type": "show_options",
            "prompt_message": "What are you interested in?",
            "options_config": {
                "field_key": "interest",
                "options": [{"label": "Hair", "value": "hair"}, {"label": "Skin"}],
            },
        },
        {
            "id": "catalog",
            "type": "share_media",
            "prompt_message": "Here is our catalog:",
            "media_config": {"media_types": ["document"]},
        },
    ],
    "actions": [{"type": "save_to_database", "table": "inquiries"}],
    "completion_message": "Thanks, we'll be in touch!",
}

BOOKING_HANDOFF_DEFINITION = {
    "trigger": {"keywords": ["appointment"]},
    "steps": [
        {
            "id": "topic",
            "type": "collect_field",
            "prompt_message": "What would you like done?",
        },
        {"id": "book", "type": "start_booking"},
    ],
}


@pytest.fixture(scope="function")
def workflow_factory(db):
    created = []

    def _create(bot, definition, name="workflow", is_published=True, is_active=True):
        # Distinct, increasing creation times keep trigger tie-breaks deterministic
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        workflow = Workflow(
            bot_id=bot.id,
            name=name,
            definition=definition,
            is_published=is_published,
            is_active=is_active,
            created_at=base + timedelta(minutes=len(created)),
        )
        db.add(workflow)
        db.commit()
        db.refresh(workflow)
        created.append(workflow)
        return workflow

    return _create


@pytest.fixture(scope="function")
def setup_lead_workflow(workflow_factory, setup_bot):
    return workflow_factory(setup_bot, LEAD_CAPTURE_DEFINITION, name="lead capture")
