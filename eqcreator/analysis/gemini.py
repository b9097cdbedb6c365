"""
Gemini vocal analysis over the Generative Language REST API.

The audio sample is sent inline (base64) together with a system
instruction and a JSON response schema; the reply text is parsed into an
AnalysisResult.
"""

import base64
import json
import logging
from typing import Optional

import requests

from eqcreator.analysis.models import AnalysisError, AnalysisResult

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-pro"
DEFAULT_TIMEOUT_S = 120.0

MISSING_KEY_MESSAGE = "API_KEY environment variable is not set"
EMPTY_RESPONSE_MESSAGE = "Gemini returned an empty response."
SAFETY_MESSAGE = (
    "The audio could not be processed due to safety settings. "
    "Please try a different audio sample."
)
GENERIC_MESSAGE = (
    "Failed to get analysis from Gemini. Please check the log for more details."
)

SYSTEM_INSTRUCTION = """You are an expert audio engineer specializing in vocal processing.
Analyze the provided audio sample to determine the speaker's vocal characteristics.
Identify the fundamental frequency range, prominent harmonics, and any problematic frequencies (e.g., sibilance, plosives, muddiness).
Based on this analysis, generate a 10-band graphic EQ preset to enhance vocal clarity, presence, and warmth. The preset should be suitable for a standard podcast or voice-over.
Provide the output in a JSON format with three main keys: 'vocalProfile', 'eqPreset', and 'audacityXml'.
- 'vocalProfile' should be an object containing 'description' (a paragraph summarizing the voice), 'fundamentalRange' (e.g., '100Hz - 250Hz'), and 'keyCharacteristics' (an array of strings like 'Slightly sibilant', 'Warm low-mids').
- 'eqPreset' should be an array of objects, where each object has 'frequency' (in Hz) and 'gain' (in dB).
- 'audacityXml' should be a string containing a valid Audacity EQ preset in XML format. The curve should be named 'Gemini Vocal Preset' and contain <point> elements for each frequency and gain setting."""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "vocalProfile": {
            "type": "OBJECT",
            "properties": {
                "description": {"type": "STRING"},
                "fundamentalRange": {"type": "STRING"},
                "keyCharacteristics": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                },
            },
            "required": ["description", "fundamentalRange", "keyCharacteristics"],
        },
        "eqPreset": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "frequency": {"type": "NUMBER"},
                    "gain": {"type": "NUMBER"},
                },
                "required": ["frequency", "gain"],
            },
        },
        "audacityXml": {"type": "STRING"},
    },
    "required": ["vocalProfile", "eqPreset", "audacityXml"],
}


class _SafetyBlocked(Exception):
    pass


def build_request(audio_bytes: bytes, mime_type: str) -> dict:
    """Request body for generateContent with the audio as an inline part."""
    return {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [{
            "role": "user",
            "parts": [{
                "inlineData": {
                    "mimeType": mime_type,
                    "data": base64.b64encode(audio_bytes).decode("ascii"),
                },
            }],
        }],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def response_text(body: dict) -> str:
    """
    Concatenate the text parts of the first candidate.
    Raises _SafetyBlocked if the prompt or candidate was stopped for safety.
    """
    feedback = body.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise _SafetyBlocked(f"prompt blocked: {feedback['blockReason']}")

    candidates = body.get("candidates") or []
    if not candidates:
        return ""
    candidate = candidates[0]
    if candidate.get("finishReason") == "SAFETY":
        raise _SafetyBlocked("candidate finished with reason SAFETY")

    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts)


def analyze_audio(audio_bytes: bytes, mime_type: str, *, api_key: str,
                  model: str = DEFAULT_MODEL,
                  timeout: float = DEFAULT_TIMEOUT_S,
                  session: Optional[requests.Session] = None) -> AnalysisResult:
    """
    Send the sample to Gemini and return its vocal profile and EQ preset.
    Every failure surfaces as AnalysisError with a user-facing message.
    """
    if not api_key:
        raise AnalysisError(MISSING_KEY_MESSAGE)

    url = f"{API_BASE_URL}/models/{model}:generateContent"
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
    http = session or requests

    try:
        response = http.post(
            url, json=build_request(audio_bytes, mime_type),
            headers=headers, timeout=timeout,
        )
        if response.status_code != 200:
            raise AnalysisError(
                f"HTTP {response.status_code}: {response.text[:500]}"
            )
        text = response_text(response.json())
        if not text:
            raise AnalysisError(EMPTY_RESPONSE_MESSAGE)
        return AnalysisResult.from_json(json.loads(text))
    except _SafetyBlocked as e:
        logger.error("Gemini blocked the request: %s", e)
        raise AnalysisError(SAFETY_MESSAGE) from e
    except (requests.exceptions.RequestException, ValueError, AttributeError,
            AnalysisError) as e:
        logger.exception("Error calling Gemini API")
        if "SAFETY" in str(e):
            raise AnalysisError(SAFETY_MESSAGE) from e
        raise AnalysisError(GENERIC_MESSAGE) from e
