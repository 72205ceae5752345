"""
Workflow engine.

Runs operator-defined conversations: trigger match on a fresh message, then
one blocking step per turn (collect_field, show_options, ai_response).
share_media steps are emitted on entry and passed through; start_booking
closes the workflow session and hands the message to the booking engine.
Finishing the step list runs the workflow's terminal actions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from app.adapters.base import MessagingAdapter
from app.config import Settings, get_settings
from app.exceptions import WorkflowConfigurationError
from app.models.bot import BotMedia
from app.models.conversation_session import ConversationSession
from app.models.workflow import Workflow
from app.schemas.ai import Intent
from app.schemas.booking import FlowKind, SessionOutcome
from app.schemas.workflow import (
    AIResponseStep,
    CollectFieldStep,
    SaveToDatabaseAction,
    ShareMediaStep,
    ShowOptionsStep,
    StartBookingStep,
    WorkflowDefinition,
    parse_workflow_definition,
)
from app.services.assistant_service import SafeAssistant, without_current
from app.services.booking_engine import GENERIC_ERROR_MESSAGE, BookingEngine
from app.services.bot_config_service import BotConfig, BotConfigService
from app.services.conversation_event_service import ConversationEventService
from app.services.conversation_session_service import (
    Clock,
    ConversationSessionService,
    utc_now,
)
from app.services.inquiry_service import InquiryService
from app.services.media_service import send_media_items

logger = logging.getLogger(__name__)

WORKFLOW_COMPLETED_MESSAGE = "Thank you! Your information has been recorded."
DEFAULT_COLLECT_PROMPT = "Please provide the information."
DEFAULT_MEDIA_PROMPT = "Here are our items:"
DEFAULT_AI_PROMPT = "What would you like to know?"

BlockingStep = Union[CollectFieldStep, ShowOptionsStep, AIResponseStep]


@dataclass
class _Plan:
    """Where a transition comes to rest and what to emit on the way."""

    texts: List[str] = field(default_factory=list)
    media: List[Tuple[int, List[BotMedia]]] = field(default_factory=list)
    rest: Optional[BlockingStep] = None
    handoff: Optional[StartBookingStep] = None

    @property
    def finished(self) -> bool:
        return self.rest is None and self.handoff is None


def options_text(step: ShowOptionsStep) -> str:
    lines = [f"{index}. {option.label}" for index, option in enumerate(step.options_config.options, start=1)]
    return "\n".join(lines)


def step_prompt(step: BlockingStep) -> str:
    if isinstance(step, ShowOptionsStep):
        prompt = step.prompt_message or "Please choose an option:"
        return f"{prompt}\n\n{options_text(step)}\n\nReply with the number or option:"
    if isinstance(step, AIResponseStep):
        return step.prompt_message or DEFAULT_AI_PROMPT
    return step.prompt_message or DEFAULT_COLLECT_PROMPT


class WorkflowEngine:
    def __init__(
        self,
        db: Session,
        booking: BookingEngine,
        assistant: SafeAssistant,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.booking = booking
        self.assistant = assistant
        self.settings = settings or get_settings()
        self.sessions = ConversationSessionService(
            db, self.settings.session_ttl_minutes, clock or utc_now
        )
        self.bot_config = BotConfigService(db)
        self.inquiries = InquiryService(db)
        self.events = ConversationEventService(db)

    async def try_handle(
        self,
        adapter: MessagingAdapter,
        text: str,
        config: Optional[BotConfig] = None,
    ) -> bool:
        """
        Continue the open workflow or start a matching one.

        Returns False when no workflow applies, so the caller can try the
        next handler. A failure inside a workflow still counts as handled:
        the user gets the generic apology instead of a second reply.
        """
        try:
            return await self._try_handle(adapter, text, config)
        except Exception:
            logger.exception(
                "Workflow turn failed for bot=%s user=%s",
                adapter.bot_id,
                adapter.user_key,
            )
            self.db.rollback()
            await adapter.send_error("workflow_error", GENERIC_ERROR_MESSAGE)
            return True

    async def _try_handle(
        self, adapter: MessagingAdapter, text: str, config: Optional[BotConfig]
    ) -> bool:
        session = self.sessions.get_active(adapter.bot_id, adapter.user_key)
        if session is not None:
            if session.flow_kind != FlowKind.WORKFLOW.value:
                return False
            return await self._continue(adapter, session, text, config)

        if config is not None and not config.workflow_enabled:
            return False
        match = self.match_trigger(adapter.bot_id, text)
        if match is None:
            return False
        workflow, definition = match
        await self._start(adapter, workflow, definition, text, config)
        return True

    def match_trigger(
        self, bot_id, text: str
    ) -> Optional[Tuple[Workflow, WorkflowDefinition]]:
        """
        Pick the workflow whose trigger matches text.

        The longest matching keyword wins; ties go to the earliest workflow
        in (created_at, id) order. Unparseable definitions are skipped.
        """
        best: Optional[Tuple[Workflow, WorkflowDefinition]] = None
        best_length = 0
        for workflow in self.bot_config.get_published_workflows(bot_id):
            try:
                definition = parse_workflow_definition(workflow.definition, workflow.id)
            except WorkflowConfigurationError as exc:
                logger.error("Skipping misconfigured workflow %s: %s", workflow.id, exc)
                continue
            length = definition.trigger.best_match_length(text)
            if length > best_length:
                best, best_length = (workflow, definition), length
        if best is not None:
            logger.info("Workflow %s matched for bot=%s", best[0].id, bot_id)
        return best

    async def _start(
        self,
        adapter: MessagingAdapter,
        workflow: Workflow,
        definition: WorkflowDefinition,
        text: str,
        config: Optional[BotConfig],
    ) -> None:
        first = definition.first_step()
        session = self.sessions.start_session(
            bot_id=adapter.bot_id,
            user_key=adapter.user_key,
            channel=adapter.channel.value,
            flow_kind=FlowKind.WORKFLOW,
            current_step=first.id,
            workflow_id=workflow.id,
        )
        await self._transition(adapter, session, workflow, definition, first, {}, text, config)

    async def _continue(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        text: str,
        config: Optional[BotConfig],
    ) -> bool:
        workflow = (
            self.bot_config.get_workflow(session.workflow_id)
            if session.workflow_id
            else None
        )
        if workflow is None:
            logger.info("Workflow for session %s is gone; closing it", session.id)
            self.sessions.complete(session, SessionOutcome.ABORTED)
            return False
        try:
            definition = parse_workflow_definition(workflow.definition, workflow.id)
        except WorkflowConfigurationError as exc:
            logger.error("Closing session %s on misconfigured workflow %s: %s", session.id, workflow.id, exc)
            self.sessions.complete(session, SessionOutcome.ABORTED)
            return False

        step = definition.find_step(session.current_step) or definition.first_step()
        data: Dict[str, Any] = dict(session.collected_data or {})
        preface: Optional[str] = None

        if isinstance(step, CollectFieldStep):
            data[step.field_key] = text.strip()
        elif isinstance(step, ShowOptionsStep):
            option = step.match(text)
            if option is None:
                self.sessions.touch(session)
                await adapter.send_text(
                    f"❌ Please choose one of the options:\n\n{options_text(step)}"
                )
                return True
            data[step.field_key] = option.stored_value
        elif isinstance(step, AIResponseStep):
            history = without_current(
                self.events.get_history_for_llm(
                    adapter.bot_id, adapter.user_key, self.settings.history_limit
                ),
                text,
            )
            preface = await self.assistant.generate_reply(
                text, Intent.QUESTION, adapter.bot_id, history
            )
        elif isinstance(step, StartBookingStep):
            await self._transition(adapter, session, workflow, definition, step, data, text, config)
            return True
        elif isinstance(step, ShareMediaStep):
            pass
        else:
            raise WorkflowConfigurationError(f"Unhandled step type {type(step).__name__}", workflow.id)

        following = definition.next_step(step)
        await self._transition(
            adapter, session, workflow, definition, following, data, text, config, preface
        )
        return True

    def _plan(self, adapter: MessagingAdapter, definition: WorkflowDefinition, step) -> _Plan:
        plan = _Plan()
        hops = 0
        while step is not None:
            hops += 1
            if hops > len(definition.steps):
                raise WorkflowConfigurationError("Workflow steps form a cycle")
            if isinstance(step, ShareMediaStep):
                plan.texts.append(step.prompt_message or DEFAULT_MEDIA_PROMPT)
                items = self.bot_config.get_media(adapter.bot_id, step.media_config.media_types)
                plan.media.append((len(plan.texts), items))
                step = definition.next_step(step)
                continue
            if isinstance(step, StartBookingStep):
                plan.handoff = step
            else:
                plan.rest = step
                plan.texts.append(step_prompt(step))
            break
        return plan

    async def _transition(
        self,
        adapter: MessagingAdapter,
        session: ConversationSession,
        workflow: Workflow,
        definition: WorkflowDefinition,
        step,
        data: Dict[str, Any],
        text: str,
        config: Optional[BotConfig],
        preface: Optional[str] = None,
    ) -> None:
        """Persist where the conversation lands, then emit what leads there."""
        try:
            plan = self._plan(adapter, definition, step)
        except WorkflowConfigurationError as exc:
            logger.error("Workflow %s cannot advance: %s", workflow.id, exc)
            self.sessions.complete(session, SessionOutcome.ABORTED, collected_data=data)
            await adapter.send_error("workflow_error", GENERIC_ERROR_MESSAGE)
            return

        if plan.handoff is not None:
            # Close before delegating: the booking session needs the slot
            self.sessions.complete(
                session,
                SessionOutcome.HANDED_OFF,
                current_step=plan.handoff.id,
                collected_data=data,
            )
        elif plan.rest is not None:
            self.sessions.save_progress(session, plan.rest.id, data)
        else:
            self._run_actions(adapter, workflow, definition, data)
            self.sessions.complete(session, SessionOutcome.COMPLETED, collected_data=data)
            logger.info("Workflow %s completed for user %s", workflow.id, adapter.user_key)

        if preface:
            await adapter.send_text(preface)
        await self._emit(adapter, plan)

        if plan.handoff is not None:
            await self.booking.handle_message(adapter, text, config)
        elif plan.finished:
            await adapter.send_text(definition.completion_message or WORKFLOW_COMPLETED_MESSAGE)

    async def _emit(self, adapter: MessagingAdapter, plan: _Plan) -> None:
        media_after = dict(plan.media)
        for index, message in enumerate(plan.texts, start=1):
            await adapter.send_text(message)
            if index in media_after:
                await send_media_items(adapter, media_after[index])

    def _run_actions(
        self,
        adapter: MessagingAdapter,
        workflow: Workflow,
        definition: WorkflowDefinition,
        data: Dict[str, Any],
    ) -> None:
        """Stage terminal actions; they commit together with the session."""
        for action in definition.actions:
            if isinstance(action, SaveToDatabaseAction):
                self.inquiries.create_inquiry(
                    bot_id=adapter.bot_id,
                    channel=adapter.channel,
                    user_key=adapter.user_key,
                    data=data,
                    workflow_id=workflow.id,
                    commit=False,
                )
