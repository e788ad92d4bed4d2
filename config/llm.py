"""Gemini model factory for the checkup agents.

Every agent asks for its own model (persona, temperature). No key means no
model: callers then stay on their deterministic templates.
"""
import logging
from typing import Optional
import google.generativeai as genai
from config.settings import GOOGLE_API_KEY, GEMINI_MODEL_NAME, GEMINI_TEMPERATURE

logger = logging.getLogger(__name__)

# Same thresholds for every category
_BLOCKED_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def get_gemini_model(
    model_name: Optional[str] = None,
    system_instruction: Optional[str] = None,
    temperature: Optional[float] = None,
):
    """
    Configures and returns a Gemini model instance.

    Args:
        model_name: Gemini model to use (default: GEMINI_MODEL_NAME)
        system_instruction: Optional persona/style block for the model.
        temperature: Sampling temperature (default: GEMINI_TEMPERATURE)

    Returns:
        GenerativeModel instance or None if API key is missing.
    """
    if not GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not set. Checkup agents will use fallback mode.")
        return None

    genai.configure(api_key=GOOGLE_API_KEY)
    name = model_name or GEMINI_MODEL_NAME
    logger.info(f"Loading Gemini model {name}")

    return genai.GenerativeModel(
        model_name=name,
        safety_settings=[
            {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
            for category in _BLOCKED_CATEGORIES
        ],
        generation_config={
            "temperature": GEMINI_TEMPERATURE if temperature is None else temperature,
        },
        system_instruction=system_instruction,
    )
