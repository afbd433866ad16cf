# tests/test_decision.py
import pytest

from referral_scout.lib.decision import Applicant, build_prompt, is_blacklisted, parse_decision, short_circuit
from referral_scout.lib.errors import PermanentRemoteError
from referral_scout.lib.models import RawRecord, Reason

JANE = RawRecord(
    url="https://www.linkedin.com/in/jane",
    name="Jane Doe",
    headline="Senior Engineer at Acme",
    experience=["Senior Engineer, Acme, 2019 - Present", "Engineer, Initech, 2016 - 2019"],
)


# ----------------------------------------------------------------------
# Short-circuit rules
# ----------------------------------------------------------------------
def test_no_experience_short_circuits():
    rec = RawRecord(url="u", name="New Grad", headline="Student")
    assert short_circuit(rec, []) is Reason.NO_EXPERIENCE


def test_blacklist_is_case_insensitive_over_headline_and_experience():
    assert is_blacklisted(JANE, ["ACME"])
    assert is_blacklisted(JANE, ["initech"])
    assert not is_blacklisted(JANE, ["globex"])
    assert not is_blacklisted(JANE, ["", "   "])


def test_blacklist_wins_over_missing_experience():
    rec = RawRecord(url="u", name="X", headline="Crypto evangelist")
    assert short_circuit(rec, ["crypto"]) is Reason.BLACKLISTED


def test_needs_remote_when_no_rule_applies():
    assert short_circuit(JANE, ["crypto"]) is None


# ----------------------------------------------------------------------
# Prompt
# ----------------------------------------------------------------------
def test_prompt_carries_profile_and_applicant():
    applicant = Applicant(name="Sam", pitch="a backend developer", resume_link="https://example.com/cv.pdf")
    prompt = build_prompt(JANE, applicant)

    assert "My name is Sam, and I am a backend developer." in prompt
    assert "Name: Jane Doe" in prompt
    assert "Engineer, Initech, 2016 - 2019" in prompt
    assert "https://example.com/cv.pdf" in prompt
    assert '"eligible": true/false' in prompt


def test_prompt_without_resume_link_has_no_resume_sentence():
    assert "resume link" not in build_prompt(JANE, Applicant())


# ----------------------------------------------------------------------
# Response parsing
# ----------------------------------------------------------------------
def test_parse_plain_json():
    d = parse_decision('{"eligible": true, "message": "  Hi Jane!  "}')
    assert d.eligible is True
    assert d.message == "Hi Jane!"


def test_parse_fenced_json_with_chatter():
    text = 'Sure, here you go:\n```json\n{\n  "eligible": false,\n  "message": ""\n}\n```\nGood luck!'
    d = parse_decision(text)
    assert d.eligible is False
    assert d.message == ""


def test_parse_legacy_verdict_key():
    assert parse_decision('{"referal": true, "message": "Hello"}').eligible is True


def test_parse_null_message_becomes_empty():
    assert parse_decision('{"eligible": false, "message": null}').message == ""


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "no braces here",
        "{not: valid json}",
        '{"message": "missing verdict"}',
        '{"eligible": "true", "message": "string verdict"}',
        '{"eligible": true, "message": 42}',
        '["eligible", true]',
    ],
)
def test_parse_rejects_malformed_payloads(text):
    with pytest.raises(PermanentRemoteError):
        parse_decision(text)
