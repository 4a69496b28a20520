"""Output sanitization: redact tokens, card data and keys before text leaves the process."""
import re

# JWTs: session access tokens and the project's anon/service keys
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+")

_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/=-]+")

_CREDENTIAL_PATTERNS = [
    re.compile(r"(?i)\b(api[_-]?key|apikey|secret|password|refresh[_-]?token|access[_-]?token)\b(\"?\s*[=:]\s*\"?)[^\s\",}]+"),
    re.compile(r"\bsk_(?:live|test)_[A-Za-z0-9]{16,}"),   # payment provider secret keys
]

# Card security codes in JSON or key=value form
_CVC_PATTERN = re.compile(r"(?i)(\"?\b(?:cvc|cvv)\b\"?\s*[=:]\s*\"?)\d{3,4}")

# Card numbers: 13-19 digits, optionally separated
_CARD_NUMBER_PATTERN = re.compile(r"\b(?:\d{4}[-\s]?){2,4}\d{1,4}\b")

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def redact_card_number(number: str) -> str:
    """Mask a card number to show only last 4 digits."""
    digits = re.sub(r"\D", "", number)
    if len(digits) < 4:
        return "****"
    return f"****-****-****-{digits[-4:]}"


def redact_email(email: str) -> str:
    """Partially redact an email address."""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    return f"{local[0]}***@{domain}" if local else f"***@{domain}"


def sanitize_output(text: str, max_chars: int = 50000) -> str:
    """
    Sanitize text before returning it to a tool caller.

    - Strips ANSI escape codes
    - Redacts JWTs, bearer tokens and credential assignments
    - Redacts card security codes and card numbers
    - Truncates to max_chars
    """
    text = _ANSI_PATTERN.sub("", text)

    text = _JWT_PATTERN.sub("[TOKEN REDACTED]", text)
    text = _BEARER_PATTERN.sub("Bearer [REDACTED]", text)
    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}[REDACTED]" if m.lastindex else "[REDACTED]", text)

    text = _CVC_PATTERN.sub(lambda m: f"{m.group(1)}[REDACTED]", text)
    text = _CARD_NUMBER_PATTERN.sub("[CARD REDACTED]", text)

    if len(text) > max_chars:
        text = text[:max_chars] + f"\n\n[... truncated at {max_chars} chars]"

    return text
