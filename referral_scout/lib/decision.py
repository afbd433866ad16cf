# ruff: noqa: E501

"""Local decision rules and the reasoning-service prompt/response contract."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import PermanentRemoteError
from .models import Decision, RawRecord, Reason

# Payload keys accepted for the boolean verdict, in priority order.
# "referal" is what older prompts asked the model to return.
_ELIGIBLE_KEYS = ("eligible", "referral", "referal")


@dataclass(frozen=True)
class Applicant:
    """Who is asking for referrals; fills the prompt preamble."""

    name: str = "the applicant"
    pitch: str = "a software developer exploring new opportunities"
    resume_link: str = ""


# -----------------------------------------------------------------------------
# Short-circuit rules
# -----------------------------------------------------------------------------
def combined_text(record: RawRecord) -> str:
    return (record.headline + " " + " ".join(record.experience)).lower()


def is_blacklisted(record: RawRecord, terms: Iterable[str]) -> bool:
    """Case-insensitive substring match of any term against headline + experience."""
    haystack = combined_text(record)
    return any(t.strip().lower() in haystack for t in terms if t and t.strip())


def short_circuit(record: RawRecord, blacklist: Iterable[str]) -> Reason | None:
    """
    Decide locally when possible. Blacklist wins over missing experience.
    Returns None when the reasoning service has to be asked.
    """
    if is_blacklisted(record, blacklist):
        return Reason.BLACKLISTED
    if not record.experience:
        return Reason.NO_EXPERIENCE
    return None


# -----------------------------------------------------------------------------
# Prompt
# -----------------------------------------------------------------------------
def build_prompt(record: RawRecord, applicant: Applicant) -> str:
    experience_text = "\n".join(record.experience) if record.experience else "No experience listed."
    resume_line = (
        f" Also, include my resume link in the message: {applicant.resume_link}" if applicant.resume_link else ""
    )
    return f"""
My name is {applicant.name}, and I am {applicant.pitch}. I am actively looking to get referrals at other companies.

Based on the following profile information, please determine whether this person would be a suitable candidate for me to request a referral from. Respond with true if:
- The person has at least 1 year of experience,
- OR is a recruiter,
- OR holds a position such as founder or co-founder.

If suitable, generate a short, personalized message that I can send to them. The message must be complete and not require any manual editing, as it will be sent via automation.{resume_line}

Return the result in the following exact JSON format:
{{
  "eligible": true/false,
  "message": "..."
}}

Profile:
Name: {record.name}
Headline: {record.headline}
Experience:
{experience_text}
""".strip()


# -----------------------------------------------------------------------------
# Response parsing
# -----------------------------------------------------------------------------
def extract_json_object(text: str) -> str:
    """Substring from the first '{' to the last '}'; PermanentRemoteError if there is none."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        raise PermanentRemoteError("No JSON object in model response", payload=text[:200])
    return text[start : end + 1]


def parse_decision(text: str | None) -> Decision:
    """
    Decode the decision payload embedded in free-form model output.

    Raises PermanentRemoteError when the text holds no decodable object, the
    verdict is missing or not a bool, or the message is not a string.
    """
    if not isinstance(text, str) or not text.strip():
        raise PermanentRemoteError("Empty model response", payload=text)
    snippet = extract_json_object(text)
    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        raise PermanentRemoteError(f"Model response is not valid JSON: {e}", payload=snippet[:200]) from e
    if not isinstance(data, dict):
        raise PermanentRemoteError("Decision payload is not an object", payload=snippet[:200])

    verdict = next((data[k] for k in _ELIGIBLE_KEYS if k in data), None)
    if not isinstance(verdict, bool):
        raise PermanentRemoteError("Decision payload lacks a boolean verdict", payload=data)

    message = data.get("message", "")
    if message is None:
        message = ""
    if not isinstance(message, str):
        raise PermanentRemoteError("Decision message is not a string", payload=data)
    return Decision(eligible=verdict, message=message.strip())
