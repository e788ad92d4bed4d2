"""Bilan Agent Module.

This module contains the agents driving the daily checkup dialogue.

Agents:
    InvestigatorAgent: Turn orchestrator walking the user through pending items.
    ItemAgent: Reads one answer about the current item (log, target increase, free text).
    NarratorAgent: Turns a scenario plus data into the user-facing message.
    DecomposerAgent: Proposes a smaller version of an item the user keeps missing.
"""
from agents.investigator_agent import InvestigatorAgent
from agents.item_agent import ItemAgent
from agents.narrator_agent import NarratorAgent
from agents.decomposer_agent import DecomposerAgent

__all__ = [
    "InvestigatorAgent",
    "ItemAgent",
    "NarratorAgent",
    "DecomposerAgent",
]
