"""
Prompt Sanitizer
----------------
Cleans user-supplied free text before it is interpolated into an LLM prompt.

The model has no enforced boundary between instructions and data, so text
that looks adversarial is rejected outright instead of being escaped or
partially stripped. The server copy of this check is authoritative: the
request schema calls it on every parse, whether or not a client already did.
"""
import re

from mealplanner.exceptions import ContentRejected

# C0 controls (tab/newline/carriage return survive until whitespace collapse), DEL and C1 controls
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")

# Zero-width, line/paragraph separators, bidi embeddings/overrides/isolates, BOM
INVISIBLE_CHARS_RE = re.compile("[\u061C\u200B-\u200F\u2028-\u202F\u2060-\u2064\u2066-\u2069\uFEFF]")

EXCESS_WHITESPACE_RE = re.compile(r"\s{3,}")

PROMPT_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|prior|above|earlier)\s+(instructions|prompts|rules|directives)", re.IGNORECASE),
    re.compile(r"ignore\s+all", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|prior|above|earlier|your)", re.IGNORECASE),
    re.compile(r"forget\s+(all\s+)?(previous|prior|above|your)\s+(instructions|prompts|rules)", re.IGNORECASE),
    re.compile(r"you\s+are\s+now", re.IGNORECASE),
    re.compile(r"new\s+instructions", re.IGNORECASE),
    re.compile(r"system\s*prompt", re.IGNORECASE),
    re.compile(r"override\s+(previous|prior|all|your)", re.IGNORECASE),
    re.compile(r"act\s+as\s+(a|an)\s", re.IGNORECASE),
    re.compile(r"pretend\s+(you|to\s+be)", re.IGNORECASE),
    re.compile(r"do\s+not\s+follow\s+(your|the|any)\s+(rules|instructions)", re.IGNORECASE),
    re.compile(r"reveal\s+(your|the|system)\s+(prompt|instructions|rules)", re.IGNORECASE),
    re.compile(r"what\s+(are|is)\s+your\s+(instructions|prompt|rules|system)", re.IGNORECASE),
]

SUSPICIOUS_PATTERNS = [
    re.compile(r"```"),  # code fence
    re.compile(r"###\s"),  # markdown heading
    re.compile(r"\{[^}]{20,}"),  # large JSON-like structure
    re.compile(r"<\s*/?\s*user_input", re.IGNORECASE),  # prompt data delimiter
]

DISALLOWED_CONTENT_MESSAGE = "Input contains disallowed content. Please use only food-related terms."
INVALID_FORMATTING_MESSAGE = "Input contains invalid characters. Please use only plain text."


def clean_text(value: str) -> str:
    """Strip invisible characters, collapse long whitespace runs and trim."""
    cleaned = CONTROL_CHARS_RE.sub("", value)
    cleaned = INVISIBLE_CHARS_RE.sub("", cleaned)
    cleaned = EXCESS_WHITESPACE_RE.sub("  ", cleaned)
    return cleaned.strip()


def find_injection_pattern(value: str):
    for pattern in PROMPT_INJECTION_PATTERNS:
        if pattern.search(value):
            return pattern
    return None


def find_suspicious_pattern(value: str):
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(value):
            return pattern
    return None


def sanitize_for_prompt(value: str) -> str:
    """
    Returns the cleaned text, or raises ContentRejected if the cleaned text
    matches an adversarial-instruction or suspicious-formatting pattern.
    """
    cleaned = clean_text(value)

    if find_injection_pattern(cleaned) is not None:
        raise ContentRejected(DISALLOWED_CONTENT_MESSAGE)

    if find_suspicious_pattern(cleaned) is not None:
        raise ContentRejected(INVALID_FORMATTING_MESSAGE)

    return cleaned
