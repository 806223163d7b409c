import json
import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

PROMPT = (
    "Analyze this permission letter image. "
    "Identify the student name, reason for permission, and check for a signature/stamp. "
    "Assess if it looks like a legitimate official document or a handwritten note. "
    "Provide a risk score (0-100) where 100 is very suspicious (e.g., no signature, messy, inconsistent)."
)

SYSTEM_INSTRUCTION = (
    "You are a strict document verification AI for a college. "
    "Analyze permission letters for authenticity."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "extractedName": {"type": "STRING", "description": "Name of the student found in the letter"},
        "extractedReason": {"type": "STRING", "description": "The reason for permission request"},
        "hasSignature": {"type": "BOOLEAN", "description": "True if a handwritten signature or stamp is detected"},
        "riskScore": {"type": "NUMBER", "description": "Risk score from 0 (safe) to 100 (suspicious)"},
        "summary": {"type": "STRING", "description": "Brief summary of the request for the teacher"},
        "isLegitimate": {"type": "BOOLEAN", "description": "Overall assessment of validity"},
    },
    "required": ["extractedName", "extractedReason", "hasSignature", "riskScore", "summary", "isLegitimate"],
}

FIELD_TYPES = {
    "extractedName": str,
    "extractedReason": str,
    "hasSignature": bool,
    "riskScore": (int, float),
    "summary": str,
    "isLegitimate": bool,
}


class VerificationError(Exception):
    pass


def fallback_result():
    """Neutral annotation used whenever the letter could not be analysed."""
    return {
        "extractedName": "Unknown",
        "extractedReason": "Could not analyze",
        "hasSignature": False,
        "riskScore": 0,
        "summary": "AI analysis failed. Please verify manually.",
        "isLegitimate": False,
    }


def split_data_url(image_base64):
    """
    Strip a `data:<mime>;base64,` header if present.
    Returns (mime_type, payload).
    """
    if image_base64.startswith('data:') and ',' in image_base64:
        header, payload = image_base64.split(',', 1)
        mime_type = header[len('data:'):].split(';')[0] or 'image/jpeg'
        return mime_type, payload
    return 'image/jpeg', image_base64


def parse_verification(result):
    """
    Pull the structured verdict out of a generateContent response and check its
    shape. Raises VerificationError on anything unexpected.
    """
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
        verdict = json.loads(text)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise VerificationError(f"Unexpected response structure: {e}")

    if not isinstance(verdict, dict):
        raise VerificationError("Verdict is not an object")
    for field, expected in FIELD_TYPES.items():
        value = verdict.get(field)
        # bool is an int subclass, keep it out of riskScore
        if not isinstance(value, expected) or (field == "riskScore" and isinstance(value, bool)):
            raise VerificationError(f"Field {field!r} missing or of the wrong type: {value!r}")

    cleaned = {field: verdict[field] for field in FIELD_TYPES}
    cleaned["riskScore"] = max(0, min(100, cleaned["riskScore"]))
    return cleaned


def request_verification(image_base64):
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        raise VerificationError("GEMINI_API_KEY is not set.")

    mime_type, payload_data = split_data_url(image_base64)
    api_url = settings.GEMINI_API_URL.format(model=settings.GEMINI_MODEL)
    payload = {
        "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
        "contents": [{
            "parts": [
                {"inlineData": {"mimeType": mime_type, "data": payload_data}},
                {"text": PROMPT},
            ],
        }],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }
    response = requests.post(
        api_url,
        headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
        json=payload,
        timeout=settings.VERIFICATION_TIMEOUT,
    )
    response.raise_for_status()
    return parse_verification(response.json())


def analyze_permission_letter(image_base64):
    """
    Ask the vision model to read a permission letter.

    The result is advisory: on any failure (no key, timeout, HTTP error,
    malformed answer) the neutral fallback is returned so the submission can
    go ahead.
    """
    try:
        verdict = request_verification(image_base64)
        logger.info(f"Letter analysed: risk {verdict['riskScore']}, signature {verdict['hasSignature']}")
        return verdict
    except VerificationError as e:
        logger.warning(f"Letter verification unavailable: {e}")
    except requests.exceptions.Timeout:
        logger.warning(f"Letter verification timed out after {settings.VERIFICATION_TIMEOUT}s")
    except requests.exceptions.RequestException as e:
        logger.warning(f"Letter verification request failed: {e}")
    except ValueError as e:
        logger.warning(f"Letter verification returned invalid JSON: {e}")
    return fallback_result()
