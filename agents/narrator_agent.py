"""NarratorAgent - Checkup Copy Generation

Turns a (scenario, payload) pair into the user-facing message of a checkup
turn. The engine decides WHAT happens; the narrator only decides how it is
said.

Design Decisions:
    1. One question per message, no bold, at most two emoji, informal register.
    2. The payload always carries the next question (or the fact that the
       bilan is over), so the model never has to guess what comes next.
    3. Without a configured model, deterministic templates are used.
    4. With a model, a failure raises NarrationError; the engine decides
       whether to fall back to the template or to the hiccup message.
"""
import json
import logging
from typing import Any, Dict

from config.llm import get_gemini_model
from config.settings import CHECKUP_LANGUAGE
from core.errors import NarrationError
from tools import templates

logger = logging.getLogger(__name__)

STYLE_RULES = {
    "fr": """Tu es Sophia, en mode bilan. Tu réponds en français, en tutoyant.
RÈGLES DE STYLE (OBLIGATOIRES):
- Réagis brièvement au message de l'utilisateur si nécessaire, puis enchaîne.
- Une seule question à la fois.
- Jamais de "bonjour" ou "salut" sauf pour l'ouverture d'un bilan à froid.
- Pas de gras (pas d'astérisques).
- Maximum 2 emojis.
- Texte brut uniquement (pas de JSON).
- Pas de termes techniques internes ("logs", "database", "JSON", "variable").""",
    "en": """You are Sophia, running a check-up. Reply in English, casual tone.
STYLE RULES (MANDATORY):
- React briefly to the user's message if needed, then move on.
- One question at a time.
- No greeting unless this is a cold opening.
- No bold (no asterisks).
- At most 2 emoji.
- Plain text only (no JSON).
- No internal technical words ("logs", "database", "JSON", "variable").""",
}

SCENARIO_HINTS = {
    "no_pending_items": "Everything is already up to date. Short, positive, end with a wink emoji.",
    "user_stopped_checkup": "The user asked to stop. Acknowledge, no question, no guilt.",
    "end_checkup_after_last_log": "The bilan is over. One or two sentences of overall impression, no item list.",
    "win_streak_end": "Celebrate the streak, then close the bilan naturally.",
    "level_up": "Congratulate warmly: the target is reached and the item is acquired. Mention what unlocks next if any.",
    "missed_streak_offer_breakdown": "Offer, without judgment, to break the item into a smaller version. Ask yes/no.",
    "breakdown_propose_step": "Present the proposed smaller step and ask if it should be added to the plan.",
    "increase_target_offer": "Offer to raise the weekly target by one. Ask yes/no.",
    "weekly_target_reached_offer": "Celebrate the weekly target and ask whether to activate the next step of the plan.",
}


class NarratorAgent:
    """
    NarratorAgent - the voice of the bilan.

    narrate(scenario, data) -> str
    """

    def __init__(self, language: str = CHECKUP_LANGUAGE):
        self.language = language
        self.model = get_gemini_model(system_instruction=STYLE_RULES.get(language, STYLE_RULES["fr"]))

    def narrate(self, scenario: str, data: Dict[str, Any]) -> str:
        if not self.model:
            return self.template(scenario, data)

        prompt = self._build_prompt(scenario, data)
        try:
            response = self.model.generate_content(prompt)
            text = (response.text or "").replace("**", "").strip()
        except Exception as e:
            logger.error(f"Narration failed for {scenario}: {e}", exc_info=True)
            raise NarrationError(scenario, str(e)) from e

        if not text:
            raise NarrationError(scenario, "empty response")
        return text

    def template(self, scenario: str, data: Dict[str, Any]) -> str:
        return templates.render(scenario, data, self.language)

    def _build_prompt(self, scenario: str, data: Dict[str, Any]) -> str:
        hint = SCENARIO_HINTS.get(scenario, "")
        next_question = data.get("next_question")
        if next_question:
            follow = f"End the message with this question, rephrased naturally: {next_question}"
        elif data.get("is_last"):
            follow = "The bilan is over after this message: do not ask about any other item."
        else:
            follow = ""

        payload = {k: v for k, v in data.items() if k != "next_question"}
        return f"""SCENARIO: {scenario}
{hint}

DATA:
{json.dumps(payload, ensure_ascii=False, default=str, indent=2)}

{follow}

Reference wording (adapt freely, keep the meaning):
{self.template(scenario, data)}
"""
