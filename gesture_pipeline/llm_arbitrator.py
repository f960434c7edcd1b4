"""
Arbitrator that asks a Gemini model which of the tied gestures was intended.
"""
import json
import logging
import os
from typing import Any, Optional

import google.generativeai as genai
from dotenv import load_dotenv

from .arbitration import ArbitrationRequest, ArbitrationResponse, parse_response
from .errors import ArbitrationError

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert in gesture recognition and human-computer interaction. "
    "Your task is to analyze ambiguous gesture data and determine the most likely "
    "intended gesture based on context."
)


def build_prompt(request: ArbitrationRequest) -> str:
    """Describe the tie and the session context for the model."""
    candidate_lines = "\n".join(
        f"- {c.name}: {c.confidence:.2f} confidence" for c in request.candidates
    )
    ctx = request.context
    recent = ", ".join(ctx.recent_gestures) if ctx.recent_gestures else "none"
    hand = json.dumps(ctx.hand_position) if ctx.hand_position else "unknown"

    return f"""
    I'm trying to determine which gesture the user most likely intended to perform.
    The system detected multiple possible gestures with the following confidence scores (0-10):

    {candidate_lines}

    Current user context:
    - Current screen: {ctx.current_screen}
    - Recent gestures: {recent}
    - Hand position: {hand}

    Based on this information, which gesture was most likely intended?
    Respond with a JSON object in this exact format: {{ "gesture": "gesture_name", "confidence": 9.5, "explanation": "brief explanation" }}
    """


class GeminiArbitrator:
    """Arbitrator backed by Google Gemini in JSON response mode."""

    def __init__(self, model_name: str = "gemini-2.5-flash", api_key: Optional[str] = None,
                 model: Optional[Any] = None):
        """
        Initialize the Gemini client.

        Args:
            model_name: Gemini model identifier
            api_key: API key; read from GOOGLE_API_KEY when omitted
            model: Preconfigured model object (skips client setup)
        """
        if model is not None:
            self.model = model
            return

        load_dotenv()
        api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY not found in environment variables")

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name, system_instruction=SYSTEM_INSTRUCTION)
        logger.info(f"✅ Gemini arbitrator ready ({model_name})")

    async def arbitrate(self, request: ArbitrationRequest) -> ArbitrationResponse:
        response = await self.model.generate_content_async(
            build_prompt(request),
            generation_config={
                "response_mime_type": "application/json",
                "temperature": 0.2,
                "max_output_tokens": 150,
            },
        )
        try:
            data = json.loads(response.text)
        except (TypeError, ValueError) as e:
            raise ArbitrationError(f"Gemini returned non-JSON text: {e}") from e
        return parse_response(data)
