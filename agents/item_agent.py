"""ItemAgent - Interpreting the Answer About the Current Item

Given the user's message while one item is being asked about, produces one
of three outputs:

    LogAction               the user answered (completed / missed / partial)
    IncreaseTargetAction    the user asked to raise a weekly target
    FreeText                anything else (digression reply, follow-up question)

With a model: Gemini function calling with two tools, `log_item_outcome`
and `increase_weekly_target`. The prompt carries the item, its recent
history and the current missed streak.

Without a model: a deterministic interpreter over the intent tables.
"""
import logging
from typing import Any, Dict, List, Optional

from config.llm import get_gemini_model
from config.settings import CHECKUP_LANGUAGE, NOTE_MAX_CHARS
from core.errors import CollaboratorError
from models.checkup import (
    CheckupItem,
    FreeText,
    IncreaseTargetAction,
    ItemKind,
    LogAction,
    LogStatus,
    ModelOutput,
    ValueKind,
)
from models.tracking import LogEntry
from tools import intents, templates

logger = logging.getLogger(__name__)

ITEM_TOOLS = [
    {
        "function_declarations": [
            {
                "name": "log_item_outcome",
                "description": "Record the outcome of the current checkup item once the user has answered.",
                "parameters": {
                    "type": "OBJECT",
                    "properties": {
                        "status": {
                            "type": "STRING",
                            "enum": ["completed", "missed", "partial"],
                            "description": "Outcome for the item.",
                        },
                        "value": {
                            "type": "NUMBER",
                            "description": "Numeric value for counters and vitals.",
                        },
                        "note": {
                            "type": "STRING",
                            "description": "Reason for a miss or a short comment, in the user's words.",
                        },
                    },
                    "required": ["status"],
                },
            },
            {
                "name": "increase_weekly_target",
                "description": "Raise the weekly target of the current habit by one, only on explicit request.",
                "parameters": {
                    "type": "OBJECT",
                    "properties": {
                        "consented": {
                            "type": "BOOLEAN",
                            "description": "True if the user explicitly agreed.",
                        },
                        "day": {
                            "type": "STRING",
                            "enum": list(intents.DAY_CODES),
                            "description": "Day of week to add, for habits with scheduled days.",
                        },
                    },
                    "required": ["consented"],
                },
            },
        ]
    }
]


class ItemAgent:
    """
    ItemAgent - reads one user answer against the current item.

    interpret(item, message, history, missed_streak) -> ModelOutput
    """

    def __init__(self, language: str = CHECKUP_LANGUAGE):
        self.language = language
        self.model = get_gemini_model(temperature=0.0)

    def interpret(
        self,
        item: CheckupItem,
        message: str,
        history: Optional[List[LogEntry]] = None,
        missed_streak: int = 0,
    ) -> ModelOutput:
        if not self.model:
            return self._fallback_run(item, message)

        prompt = self._build_prompt(item, message, history or [], missed_streak)
        try:
            response = self.model.generate_content(prompt, tools=ITEM_TOOLS)
            output = self._parse_response(response)
        except Exception as e:
            logger.error(f"ItemAgent failed for {item.id}: {e}", exc_info=True)
            raise CollaboratorError("item_model", str(e)) from e

        logger.info(f"ItemAgent: {type(output).__name__} for {item.id}")
        return output

    def _parse_response(self, response) -> ModelOutput:
        candidates = getattr(response, "candidates", None) or []
        texts = []
        if candidates:
            for part in candidates[0].content.parts:
                call = getattr(part, "function_call", None)
                if call is not None and call.name:
                    return self._from_call(call.name, dict(call.args or {}))
                if getattr(part, "text", ""):
                    texts.append(part.text)
        text = " ".join(texts).strip()
        if not text:
            raise ValueError("model returned neither a tool call nor text")
        return FreeText(text=text.replace("**", ""))

    @staticmethod
    def _from_call(name: str, args: Dict[str, Any]) -> ModelOutput:
        if name == "log_item_outcome":
            value = args.get("value")
            note = args.get("note")
            return LogAction(
                status=LogStatus(str(args.get("status", "completed"))),
                value=float(value) if value is not None else None,
                note=str(note)[:NOTE_MAX_CHARS] if note else None,
            )
        if name == "increase_weekly_target":
            day = args.get("day")
            return IncreaseTargetAction(consented=bool(args.get("consented")), day=str(day) if day else None)
        raise ValueError(f"unknown tool call: {name}")

    def _build_prompt(self, item: CheckupItem, message: str, history: List[LogEntry],
                      missed_streak: int) -> str:
        lines = [f"- {e.day.isoformat()}: {e.status}" + (f" ({e.note})" if e.note else "") for e in history[:7]]
        history_text = "\n".join(lines) if lines else "- none"
        weekly = ""
        if item.is_weekly_habit:
            weekly = f"WEEKLY TARGET: {item.weekly_target} (done this week: {item.current_quantity or 0})\n"
        lang = "French, informal 'tu'" if self.language == "fr" else "English, casual"

        return f"""You are running a daily check-up, one item at a time.

CURRENT ITEM: {item.title} ({item.kind.value}, {item.value_kind.value})
DESCRIPTION: {item.description or "-"}
ASKING ABOUT: {item.day_scope.value}
UNIT: {item.unit or "-"}
{weekly}RECENT HISTORY:
{history_text}
MISSED_STREAK_DAYS: {missed_streak}

USER MESSAGE: "{message}"

RULES:
- If the user answered for this item, call log_item_outcome (value required for numeric items).
- If the user says it was not done and gave no reason, you may ask ONE short question about what blocked them.
- If the user explicitly asks to raise the weekly target, call increase_weekly_target.
- Otherwise reply in one or two short sentences, in {lang}, and bring them back to this item.
"""

    def _fallback_run(self, item: CheckupItem, message: str) -> ModelOutput:
        """Deterministic reading of the answer."""
        lang = self.language
        note = (message or "").strip()[:NOTE_MAX_CHARS] or None

        if item.is_weekly_habit and intents.wants_target_increase(message, lang):
            return IncreaseTargetAction(consented=True, day=intents.parse_day_of_week(message, lang))

        if item.kind == ItemKind.VITAL or item.value_kind == ValueKind.NUMERIC:
            value = intents.extract_number(message)
            if value is not None:
                return LogAction(status=LogStatus.COMPLETED, value=value)
            if intents.says_not_done(message, lang):
                return LogAction(status=LogStatus.MISSED, note=note)
            return self._reask(item)

        if intents.says_partial(message, lang):
            return LogAction(status=LogStatus.PARTIAL, note=note)
        if intents.says_not_done(message, lang):
            return LogAction(status=LogStatus.MISSED, note=note)
        if intents.says_done(message, lang):
            return LogAction(status=LogStatus.COMPLETED)
        return self._reask(item)

    def _reask(self, item: CheckupItem) -> FreeText:
        question = templates.item_question(item, self.language)
        return FreeText(text=templates.render("reask_item", {"next_question": question}, self.language))
