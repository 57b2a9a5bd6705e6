from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Sequence

from sahayak.models import SchemeCandidate


def build_system_instruction(language_label: str, context: Optional[Dict[str, Any]] = None) -> str:
    """
    Instruction sent with every one-shot chat or audio message.
    Keeping it here prevents prompt logic from getting scattered across the codebase.
    """
    data = json.dumps(context or {}, ensure_ascii=False)
    return f"""You are 'Samriddhi Sahayak', a highly intelligent and empathetic AI assistant for an Indian Citizen Welfare Portal.
Your goal is to help citizens discover welfare schemes, understand document procedures, and lodge grievances.

CRITICAL RULES:
1. LINGUISTIC PRECISION: You MUST respond strictly in the user's selected language: {language_label}.
2. NATIVE SCRIPT: If the language is an Indian regional language (like Hindi, Marathi, Tamil, etc.), you MUST use its native script.
3. CULTURAL CONTEXT: Use respectful Indian honorifics and culturally appropriate greetings based on the language.
4. AUDIO ANALYSIS: If an audio file is provided, transcribe it accurately (even if it is in a regional dialect) and respond to the query found within.
5. DATA ACCURACY: Use the provided context to give factual answers: {data}.

Current Language Setting: {language_label}
"""


def build_user_turn(prompt: Optional[str], has_audio: bool) -> str:
    if prompt:
        return prompt
    if has_audio:
        return "The user sent a voice message. Please analyze the audio and respond."
    return "Namaste!"


def build_live_instruction(language_label: str) -> str:
    """Default behavioral brief for a live voice session."""
    return (
        "You are Samriddhi Sahayak, an Indian e-governance chatbot. "
        "Help users with schemes, documents, and grievances. "
        "Use a helpful, respectful, and authoritative tone. "
        f"Respond ONLY in {language_label}."
    )


def build_guidance_instruction(title: str, procedure: str) -> str:
    return f"The user needs help with {title}. Procedure: {procedure}. Guide them step-by-step."


def build_guidance_announcement(title: str) -> str:
    return f"Initiating AI Guidance Call for: {title}. How can I assist you with this facility?"


def build_search_prompt(query: str, candidates: Sequence[SchemeCandidate]) -> str:
    schemes = json.dumps([c.to_dict() for c in candidates], ensure_ascii=False)
    return f"""The user is searching for: "{query}".
Below is a list of government schemes. Identify and return the IDs of the most relevant schemes as a JSON array of strings, most relevant first.
If no schemes match well, return an empty array [].
Schemes: {schemes}"""


def build_document_check_prompt(scheme_name: str, criteria: List[str], language_label: str) -> str:
    return f"""Analyze the provided document image. Determine if the user is eligible for the scheme: "{scheme_name}".
Criteria: {', '.join(criteria)}.
Identify the document type.
Check if key information (Name, Date, Income, Category etc.) matches the criteria.
Write the observation in {language_label}.
Return a JSON object with:
- isEligible (boolean)
- confidenceScore (0-100)
- detectedDocumentType (string)
- observation (detailed reason why eligible or not)
- missingInformation (list of fields not found or blurry)"""


def build_suggestion_prompt(profile: str) -> str:
    return (
        f'Based on this user profile: "{profile}", list the government schemes they might be '
        "eligible for from the Indian welfare landscape. Provide a JSON list."
    )


def build_translate_prompt(text: str, target_label: str) -> str:
    return (
        f"Translate the following text into {target_label}. Maintain the tone and formatting. "
        f'Return ONLY the translated text.\n\nText: "{text}"'
    )
