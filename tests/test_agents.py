"""Unit Tests for the Bilan Agents.

These tests verify the agents without requiring API calls: fallback modes,
plus fake Gemini responses for the parsing paths.

Run with: pytest tests/ -v
"""
from types import SimpleNamespace

import pytest

from agents.decomposer_agent import DecomposerAgent
from agents.item_agent import ItemAgent
from agents.narrator_agent import NarratorAgent
from core.errors import CollaboratorError, NarrationError
from core.transitions import narrate_or_template
from models.checkup import (
    CheckupItem,
    FreeText,
    IncreaseTargetAction,
    ItemKind,
    LogAction,
    LogStatus,
    ValueKind,
)

WALK = CheckupItem(id="walk", kind=ItemKind.ACTION, title="Marcher")
HABIT = CheckupItem(id="run", kind=ItemKind.ACTION, title="Courir", target_quantity=3, is_weekly_habit=True)
WEIGHT = CheckupItem(id="w", kind=ItemKind.VITAL, title="Poids", value_kind=ValueKind.NUMERIC, unit="kg")


class FakeModel:
    """Stands in for a GenerativeModel: returns a canned response or raises."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        if self.error:
            raise self.error
        return self.response


def _parts_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _call(name, **args):
    return SimpleNamespace(function_call=SimpleNamespace(name=name, args=args), text="")


class TestItemAgentFallback:
    """Deterministic reading of answers (no API key)."""

    def test_done(self):
        output = ItemAgent("fr").interpret(WALK, "oui c'est fait")
        assert output == LogAction(status=LogStatus.COMPLETED)

    def test_not_done_keeps_note(self):
        output = ItemAgent("fr").interpret(WALK, "pas fait, trop de boulot")
        assert output.status == LogStatus.MISSED
        assert output.note == "pas fait, trop de boulot"

    def test_partial(self):
        assert ItemAgent("fr").interpret(WALK, "à moitié").status == LogStatus.PARTIAL

    def test_numeric_value(self):
        output = ItemAgent("fr").interpret(WEIGHT, "71,4")
        assert output == LogAction(status=LogStatus.COMPLETED, value=71.4)

    def test_unclear_reasks_item(self):
        output = ItemAgent("fr").interpret(WALK, "il pleuvait des cordes")
        assert isinstance(output, FreeText)
        assert "Marcher" in output.text

    def test_increase_request_on_habit(self):
        output = ItemAgent("fr").interpret(HABIT, "tu peux augmenter, ajoute le samedi")
        assert output == IncreaseTargetAction(consented=True, day="sat")

    def test_english(self):
        assert ItemAgent("en").interpret(WALK, "nope, didn't").status == LogStatus.MISSED


class TestItemAgentModel:
    """Function-call parsing of Gemini responses."""

    def _agent(self, model):
        agent = ItemAgent("fr")
        agent.model = model
        return agent

    def test_log_call(self):
        model = FakeModel(_parts_response(_call("log_item_outcome", status="missed", note="malade")))
        output = self._agent(model).interpret(WALK, "j'étais malade")

        assert output == LogAction(status=LogStatus.MISSED, value=None, note="malade")
        assert "tools" in model.calls[0][1]

    def test_increase_call(self):
        model = FakeModel(_parts_response(_call("increase_weekly_target", consented=True, day="fri")))
        assert self._agent(model).interpret(HABIT, "rajoute vendredi") == IncreaseTargetAction(True, "fri")

    def test_text_reply(self):
        model = FakeModel(_parts_response(SimpleNamespace(function_call=None, text="Qu'est-ce qui a **bloqué** ?")))
        output = self._agent(model).interpret(WALK, "non")
        assert output == FreeText("Qu'est-ce qui a bloqué ?")

    def test_model_failure_raises(self):
        with pytest.raises(CollaboratorError):
            self._agent(FakeModel(error=RuntimeError("quota"))).interpret(WALK, "fait")

    def test_empty_response_raises(self):
        with pytest.raises(CollaboratorError):
            self._agent(FakeModel(_parts_response())).interpret(WALK, "fait")


class TestNarrator:

    def test_fallback_uses_templates(self):
        text = NarratorAgent("fr").narrate("ask_item", {"next_question": "Et « Marcher », c'est fait hier ?"})
        assert text == "Et « Marcher », c'est fait hier ?"

    def test_model_text_is_cleaned(self):
        narrator = NarratorAgent("fr")
        narrator.model = FakeModel(SimpleNamespace(text="**Top** ! Et la marche ?"))
        assert narrator.narrate("action_completed_transition", {"next_question": "Et la marche ?"}) == \
            "Top ! Et la marche ?"

    def test_model_failure_raises_narration_error(self):
        narrator = NarratorAgent("fr")
        narrator.model = FakeModel(error=RuntimeError("timeout"))
        with pytest.raises(NarrationError) as exc:
            narrator.narrate("level_up", {})
        assert exc.value.scenario == "level_up"

    def test_narrate_or_template_recovers(self):
        narrator = NarratorAgent("en")
        narrator.model = FakeModel(SimpleNamespace(text="   "))
        text = narrate_or_template(narrator, "user_stopped_checkup", {}, "en")
        assert text.startswith("Ok, let's stop")

    def test_prompt_carries_next_question(self):
        narrator = NarratorAgent("fr")
        prompt = narrator._build_prompt("action_completed_transition",
                                        {"next_question": "Et la lecture ?", "title": "Marcher"})
        assert "Et la lecture ?" in prompt


class TestDecomposer:

    def test_fallback_proposal(self):
        proposal = DecomposerAgent("en").propose_smaller_version(WALK, "no time")
        assert proposal.title == "2-minute version: Marcher"

    def test_json_proposal(self):
        agent = DecomposerAgent("fr")
        agent.model = FakeModel(SimpleNamespace(
            text='```json\n{"title": "Marcher 5 min", "description": "Après le déjeuner", "tip": "Chaussures prêtes"}\n```'
        ))
        proposal = agent.propose_smaller_version(WALK, "pas le temps")

        assert proposal.title == "Marcher 5 min"
        assert proposal.tip == "Chaussures prêtes"

    def test_invalid_json_raises(self):
        agent = DecomposerAgent("fr")
        agent.model = FakeModel(SimpleNamespace(text="pas du json"))
        with pytest.raises(CollaboratorError):
            agent.propose_smaller_version(WALK, "pas le temps")


class TestModelFactory:

    def test_no_key_means_no_model(self):
        from config.llm import get_gemini_model
        assert get_gemini_model(temperature=0.0) is None
