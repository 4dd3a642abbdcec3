"""
Attendee classification and company naming helpers.

Heuristic only: false positives and negatives are expected. A colleague
on a personal address is dropped and a vendor's shared inbox is kept.
"""

from __future__ import annotations

import re

PERSONAL_DOMAINS = frozenset(
    {
        "gmail.com",
        "googlemail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "live.com",
        "msn.com",
        "icloud.com",
        "me.com",
        "aol.com",
        "protonmail.com",
        "mail.com",
        "zoho.com",
        "yandex.com",
        "gmx.com",
        "fastmail.com",
    }
)

SYSTEM_EMAIL_PATTERNS = (
    "calendar.google.com",
    "group.calendar.google.com",
    "resource.calendar.google.com",
    "noreply",
    "no-reply",
    "notifications",
    "calendar-notification",
)

KNOWN_TLDS = frozenset(
    {"com", "io", "co", "net", "org", "ai", "app", "dev", "tech", "xyz", "us", "uk", "de", "ca"}
)

_SECOND_LEVEL_SUFFIX = re.compile(r"\.(co|com|org|net|ac|gov)$")


def extract_domain(email: str | None) -> str:
    """Lower-cased part after the first '@', or '' when absent."""
    if not email or "@" not in email:
        return ""
    return email.split("@")[1].strip().lower()


def is_system_email(email: str) -> bool:
    """True when the address contains a known automation or no-reply marker."""
    lowered = email.lower()
    return any(pattern in lowered for pattern in SYSTEM_EMAIL_PATTERNS)


def is_business_email(email: str | None, user_email: str | None = None) -> bool:
    """
    Decide whether an attendee address looks like an external business contact.

    Rejects empty domains, personal mail providers, system/automation senders
    and the syncing user's own address.
    """
    if not email:
        return False

    domain = extract_domain(email)
    if not domain:
        return False
    if domain in PERSONAL_DOMAINS:
        return False
    if is_system_email(email):
        return False
    if user_email and email.strip().lower() == user_email.strip().lower():
        return False
    return True


def normalize_company_name(domain: str) -> str:
    """
    Presentable company name for a domain.

    acme.io -> "Acme", acme.co.uk -> "Acme", my-co.vc -> "My-co Vc".
    """
    base = domain.strip().lower()

    labels = base.rsplit(".", 1)
    if len(labels) == 2 and labels[1] in KNOWN_TLDS:
        base = labels[0]
        base = _SECOND_LEVEL_SUFFIX.sub("", base)

    return " ".join(label[:1].upper() + label[1:] for label in base.split(".") if label)
