"""DecomposerAgent - Smaller Version of a Stuck Item

Used only inside the breakdown offer: given an item that keeps being missed
and the blocker the user stated, proposes one smaller, concrete step.

Output is JSON-mode Gemini ({title, description, tip}); without a model a
"2-minute version" of the item is proposed.
"""
import json
import logging

from config.llm import get_gemini_model
from config.settings import CHECKUP_LANGUAGE
from core.errors import CollaboratorError
from models.checkup import CheckupItem
from models.tracking import ProposedItem

logger = logging.getLogger(__name__)


class DecomposerAgent:
    """Proposes a micro-step for an item the user keeps missing."""

    def __init__(self, language: str = CHECKUP_LANGUAGE):
        self.language = language
        self.model = get_gemini_model(temperature=0.7)

    def propose_smaller_version(self, item: CheckupItem, blocker: str) -> ProposedItem:
        if not self.model:
            return self._fallback(item, blocker)

        prompt = self._build_prompt(item, blocker)
        try:
            response = self.model.generate_content(
                prompt,
                generation_config={"response_mime_type": "application/json"}
            )
            text = response.text.replace("```json", "").replace("```", "").strip()
            proposal = ProposedItem.from_dict(json.loads(text))
        except Exception as e:
            logger.error(f"Decomposition failed for {item.id}: {e}", exc_info=True)
            raise CollaboratorError("decomposer", str(e)) from e

        if not proposal.title:
            raise CollaboratorError("decomposer", "proposal without title")
        logger.info(f"DecomposerAgent: proposed '{proposal.title}' for {item.id}")
        return proposal

    def _build_prompt(self, item: CheckupItem, blocker: str) -> str:
        lang = "French, informal 'tu'" if self.language == "fr" else "English, casual"
        return f"""You help someone who keeps missing a habit.

HABIT: {item.title}
DESCRIPTION: {item.description or "-"}
WHAT BLOCKS THEM: {blocker or "-"}

Propose ONE smaller version of the habit that removes this blocker.
It must take at most 2-5 minutes and be doable even on a bad day.

Answer in {lang}, as JSON:
{{"title": "short action title", "description": "one sentence", "tip": "one practical tip"}}
"""

    def _fallback(self, item: CheckupItem, blocker: str) -> ProposedItem:
        if self.language == "en":
            return ProposedItem(
                title=f"2-minute version: {item.title}",
                description=f"Just start \"{item.title}\" for two minutes, nothing more.",
                tip="Attach it to something you already do every day.",
            )
        return ProposedItem(
            title=f"Version 2 minutes : {item.title}",
            description=f"Juste démarrer « {item.title} » pendant deux minutes, rien de plus.",
            tip="Accroche-la à quelque chose que tu fais déjà tous les jours.",
        )
