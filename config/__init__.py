"""Bilan Configuration Module.

This module handles LLM configuration and checkup policy settings.

Functions:
    get_gemini_model: Initialize and return a configured Gemini model.

Classes:
    CheckupPolicy: Policy constants (windows, thresholds, caps) for the engine.
"""
from config.llm import get_gemini_model
from config.settings import CheckupPolicy

__all__ = ["get_gemini_model", "CheckupPolicy"]
