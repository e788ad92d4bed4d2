"""Deterministic checkup copy.

One template per (language, scenario). Used as-is when no model is
configured, and as the fallback whenever narration fails. Templates only
reference keys of the narration payload; a missing key renders empty.

`{continuation}` expands to the next item's question, or to the closing
line when the bilan is over.
"""
from typing import Any, Dict, Optional

from models.checkup import CheckupItem, DayScope, ItemKind, ValueKind

TEMPLATES: Dict[str, Dict[str, str]] = {
    "fr": {
        "opening_cold": "Hello, on fait ton bilan ? On commence. {next_question}",
        "opening_ongoing": "Ok, on fait le point. {next_question}",
        "no_pending_items": "Tu es déjà à jour sur toutes tes actions, réserve cette énergie pour le bilan de demain 😉",
        "user_stopped_checkup": "Ok, on arrête là pour le bilan. On reprendra une autre fois.",
        "end_checkup_after_last_log": "C'est noté. {closing}",
        "end_checkup_no_more_items": "On a fait le tour. {closing}",
        "ask_item": "{next_question}",
        "reask_item": "On reprend le fil : {next_question}",
        "action_completed_transition": "Top, c'est noté. {continuation}",
        "action_partial_transition": "Ok, un peu c'est déjà ça. {continuation}",
        "action_missed_transition": "Ok, c'est noté, pas de souci. {continuation}",
        "vital_logged_transition": "{tone_phrase} {continuation}",
        "item_skipped_transition": "On laisse ça de côté pour aujourd'hui. {continuation}",
        "win_streak_continue": "{streak_days} jours d'affilée, solide ! {continuation}",
        "win_streak_end": "{streak_days} jours d'affilée, solide ! {closing}",
        "level_up": "Objectif atteint sur « {title} », c'est dans la poche. {unlock_phrase}{continuation}",
        "weekly_target_reached_offer": (
            "Tu as atteint ton objectif de {weekly_target} fois cette semaine sur « {title} » 🎉 "
            "Tu veux qu'on active la suite de ton plan ?"
        ),
        "missed_streak_offer_breakdown": (
            "Je vois que « {title} » coince depuis {streak_days} jours. "
            "Tu veux qu'on la découpe en une version plus petite ?"
        ),
        "breakdown_ask_blocker": "Ok. En une phrase, qu'est-ce qui bloque le plus en ce moment ?",
        "breakdown_propose_step": (
            "Je te propose : « {proposal_title} ». {proposal_description} {tip} "
            "On l'ajoute à ton plan ?"
        ),
        "breakdown_committed": "C'est ajouté : « {proposal_title} ». {continuation}",
        "breakdown_declined": "Ok, on garde ça comme c'est. {continuation}",
        "increase_target_offer": (
            "Tu as dépassé ton objectif sur « {title} » ({current_target} fois par semaine). "
            "Tu veux passer à {proposed_target} ?"
        ),
        "increase_target_ask_day": "Quel jour tu veux ajouter ?",
        "increase_target_done": "C'est fait, « {title} » passe à {new_target} fois par semaine{day_phrase}. {continuation}",
        "increase_target_declined": "Ok, on garde {current_target} fois par semaine. {continuation}",
        "increase_target_at_max": "Tu es déjà au maximum de {max_frequency} fois par semaine sur « {title} ». {continuation}",
        "increase_target_not_applicable": "Cet objectif ne se règle pas à la semaine. {continuation}",
        "activate_next_done": "C'est activé : « {next_title} ». {continuation}",
        "activate_next_none": "Il n'y a rien d'autre en attente dans ton plan pour l'instant. {continuation}",
        "activate_next_declined": "Ok, on ne touche à rien. {continuation}",
        "offer_clarify": "Je n'ai pas bien compris : oui ou non ?",
        "offer_detail_reprompt": "Je n'ai pas reconnu le jour. Tu peux me dire lundi, mardi, etc. ?",
        "technical_hiccup": (
            "Ok, j'ai eu un souci technique en faisant ça. On continue quand même : "
            "tu peux me redire juste « fait / pas fait » (ou une phrase), et je reprends."
        ),
    },
    "en": {
        "opening_cold": "Hey, shall we do your check-up? Let's start. {next_question}",
        "opening_ongoing": "Ok, let's check in. {next_question}",
        "no_pending_items": "You're already up to date on everything, save that energy for tomorrow's check-up 😉",
        "user_stopped_checkup": "Ok, let's stop the check-up here. We'll pick it up another time.",
        "end_checkup_after_last_log": "Noted. {closing}",
        "end_checkup_no_more_items": "We've covered everything. {closing}",
        "ask_item": "{next_question}",
        "reask_item": "Back to it: {next_question}",
        "action_completed_transition": "Nice, noted. {continuation}",
        "action_partial_transition": "Ok, some is better than none. {continuation}",
        "action_missed_transition": "Ok, noted, no worries. {continuation}",
        "vital_logged_transition": "{tone_phrase} {continuation}",
        "item_skipped_transition": "Let's leave that one aside for today. {continuation}",
        "win_streak_continue": "{streak_days} days in a row, solid! {continuation}",
        "win_streak_end": "{streak_days} days in a row, solid! {closing}",
        "level_up": "Goal reached on \"{title}\", that one's in the bag. {unlock_phrase}{continuation}",
        "weekly_target_reached_offer": (
            "You hit your goal of {weekly_target} times this week on \"{title}\" 🎉 "
            "Want to unlock the next step of your plan?"
        ),
        "missed_streak_offer_breakdown": (
            "I see \"{title}\" has been stuck for {streak_days} days. "
            "Want to break it down into a smaller version?"
        ),
        "breakdown_ask_blocker": "Ok. In one sentence, what's blocking you the most right now?",
        "breakdown_propose_step": (
            "Here's an idea: \"{proposal_title}\". {proposal_description} {tip} "
            "Shall I add it to your plan?"
        ),
        "breakdown_committed": "Added: \"{proposal_title}\". {continuation}",
        "breakdown_declined": "Ok, we keep it as it is. {continuation}",
        "increase_target_offer": (
            "You went past your goal on \"{title}\" ({current_target} times a week). "
            "Want to move to {proposed_target}?"
        ),
        "increase_target_ask_day": "Which day do you want to add?",
        "increase_target_done": "Done, \"{title}\" is now {new_target} times a week{day_phrase}. {continuation}",
        "increase_target_declined": "Ok, we keep {current_target} times a week. {continuation}",
        "increase_target_at_max": "You're already at the maximum of {max_frequency} times a week on \"{title}\". {continuation}",
        "increase_target_not_applicable": "That goal isn't a weekly one. {continuation}",
        "activate_next_done": "Unlocked: \"{next_title}\". {continuation}",
        "activate_next_none": "Nothing else is waiting in your plan for now. {continuation}",
        "activate_next_declined": "Ok, we leave it as is. {continuation}",
        "offer_clarify": "I didn't quite get that: yes or no?",
        "offer_detail_reprompt": "I didn't recognise the day. Could you say Monday, Tuesday, etc.?",
        "technical_hiccup": (
            "Ok, I hit a technical hiccup there. Let's keep going: "
            "just tell me again \"done / not done\" (or a sentence) and I'll pick it up."
        ),
    },
}

CLOSING = {
    "fr": "C'est tout pour ce bilan, merci 🙏",
    "en": "That's it for this check-up, thanks 🙏",
}

TONE_PHRASES = {
    "fr": {
        "encouraging": "Ça progresse, bien joué.",
        "neutral": "C'est noté.",
        "non_judgmental": "C'est noté, ça bouge un peu, rien de grave.",
    },
    "en": {
        "encouraging": "That's moving the right way, well done.",
        "neutral": "Noted.",
        "non_judgmental": "Noted, it moved a bit, nothing to worry about.",
    },
}

DAY_LABELS = {
    "fr": {"mon": "lundi", "tue": "mardi", "wed": "mercredi", "thu": "jeudi",
           "fri": "vendredi", "sat": "samedi", "sun": "dimanche"},
    "en": {"mon": "Monday", "tue": "Tuesday", "wed": "Wednesday", "thu": "Thursday",
           "fri": "Friday", "sat": "Saturday", "sun": "Sunday"},
}

_SCOPE_WORDS = {
    "fr": {DayScope.TODAY: "aujourd'hui", DayScope.YESTERDAY: "hier"},
    "en": {DayScope.TODAY: "today", DayScope.YESTERDAY: "yesterday"},
}


class _Blank(dict):
    def __missing__(self, key):
        return ""


def _lang(language: str) -> str:
    return language if language in TEMPLATES else "fr"


def item_question(item: Optional[CheckupItem], language: str) -> str:
    """The plain question asking about one item."""
    if item is None:
        return ""
    lang = _lang(language)
    when = _SCOPE_WORDS[lang][item.day_scope]
    unit = f" ({item.unit})" if item.unit else ""

    if lang == "en":
        if item.kind == ItemKind.VITAL or item.value_kind == ValueKind.NUMERIC:
            return f"How much for \"{item.title}\" {when}{unit}?"
        if item.kind == ItemKind.EXERCISE:
            return f"Did you do your exercise \"{item.title}\" {when}?"
        return f"And \"{item.title}\", done {when}?"

    if item.kind == ItemKind.VITAL or item.value_kind == ValueKind.NUMERIC:
        return f"Côté « {item.title} », tu en es à combien {when}{unit} ?"
    if item.kind == ItemKind.EXERCISE:
        return f"Et ton exercice « {item.title} », tu l'as fait {when} ?"
    return f"Et « {item.title} », c'est fait {when} ?"


def render(scenario: str, data: Dict[str, Any], language: str) -> str:
    """Fill the template of `scenario`. Unknown scenarios fall back to the next question."""
    lang = _lang(language)
    template = TEMPLATES[lang].get(scenario, "{continuation}")

    values = _Blank({k: v for k, v in data.items() if v is not None})
    values["closing"] = CLOSING[lang]
    values["continuation"] = data.get("next_question") or CLOSING[lang]
    values["tone_phrase"] = TONE_PHRASES[lang].get(str(data.get("tone") or "neutral"), TONE_PHRASES[lang]["neutral"])

    day = data.get("day")
    if day:
        label = DAY_LABELS[lang].get(day, day)
        values["day_phrase"] = f" (+ {label})"

    next_title = data.get("next_title")
    if scenario == "level_up" and next_title:
        values["unlock_phrase"] = (
            f"Prochaine étape débloquée : « {next_title} ». " if lang == "fr"
            else f"Next step unlocked: \"{next_title}\". "
        )

    text = template.format_map(values)
    return " ".join(text.split())
