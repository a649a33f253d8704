from __future__ import annotations

import re
from dataclasses import dataclass

from helpdesk.core.config import settings

LICENSE_TERMS_RE = re.compile(
    r"\blicen[cs]e[sd]?\b|\b(activation|product|serial|license|licence) (key|code)s?\b",
    re.IGNORECASE,
)

CATEGORY_PATTERNS = (
    ("expired", re.compile(r"\bexpir(ed|es|y|ation)\b|\blapsed\b|\bout of date\b", re.IGNORECASE)),
    ("activation", re.compile(r"\bactivat(e|ed|ion|ing)\b|\bdeactivated\b", re.IGNORECASE)),
    ("blocked", re.compile(r"\b(blocked|locked|suspended|revoked|disabled)\b", re.IGNORECASE)),
    ("key", re.compile(r"\b(key|code)s?\b|\blost\b", re.IGNORECASE)),
    ("validation", re.compile(r"\b(invalid|not valid|validat(e|ion)|verif(y|ication)|rejected)\b", re.IGNORECASE)),
    ("renewal", re.compile(r"\b(renew(al|ing)?|extend|extension|upgrade)\b", re.IGNORECASE)),
)

RESPONSES = {
    "expired": (
        "It looks like your license has expired. You can renew and reactivate it "
        "at {url}. Once the new license is active, restart the software and it "
        "will pick up the change."
    ),
    "activation": (
        "To activate your license, open {url} and enter your license key along "
        "with your device serial number. The activation usually takes effect "
        "within a few minutes."
    ),
    "blocked": (
        "Your license appears to be blocked. Please visit {url} to check its "
        "status. If it still shows as blocked, reply here and a support "
        "specialist will review it."
    ),
    "key": (
        "You can retrieve or re-enter your license key at {url}. Make sure to "
        "copy the key exactly as it was issued, without extra spaces."
    ),
    "validation": (
        "If your license fails validation, check that the key matches the one "
        "issued for this device, then re-validate it at {url}."
    ),
    "renewal": (
        "You can renew or extend your license at {url}. The renewed license "
        "applies to the same device and key."
    ),
    "general": (
        "For anything related to your license, the activation portal at {url} "
        "lets you activate or renew your license and check its status."
    ),
}


@dataclass(frozen=True)
class LicenseMatch:
    category: str
    response: str


def classify_license_issue(text: str) -> str | None:
    if not text or not LICENSE_TERMS_RE.search(text):
        return None
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return "general"


class LicenseRuleEngine:
    def __init__(self, activation_url: str | None = None) -> None:
        self.activation_url = activation_url or settings.LICENSE_ACTIVATION_URL

    def check(self, text: str) -> LicenseMatch | None:
        category = classify_license_issue(text)
        if category is None:
            return None
        return LicenseMatch(
            category=category,
            response=RESPONSES[category].format(url=self.activation_url),
        )
