import pytest

from relgraph.features.network_sync.pipeline.classification import (
    extract_domain,
    is_business_email,
    is_system_email,
    normalize_company_name,
)


@pytest.mark.parametrize(
    "email",
    [
        "someone@gmail.com",
        "Someone@GMAIL.com",
        "a@yahoo.com",
        "b@icloud.com",
        "c@protonmail.com",
    ],
)
def test_personal_domains_are_rejected(email):
    assert is_business_email(email) is False


@pytest.mark.parametrize(
    "email",
    [
        "abc123@group.calendar.google.com",
        "room-1@resource.calendar.google.com",
        "noreply@vendor.com",
        "no-reply@vendor.com",
        "notifications@github.io",
        "calendar-notification@corp.com",
    ],
)
def test_system_addresses_are_rejected(email):
    assert is_system_email(email) is True
    assert is_business_email(email) is False


def test_own_address_is_rejected_case_insensitively():
    assert is_business_email("Me@Acme.io", user_email="me@acme.io") is False
    assert is_business_email("colleague@acme.io", user_email="me@acme.io") is True


@pytest.mark.parametrize("email", [None, "", "no-at-sign", "trailing@"])
def test_addresses_without_domain_are_rejected(email):
    assert is_business_email(email) is False


def test_extract_domain_lowercases():
    assert extract_domain("Jane@Acme.IO") == "acme.io"
    assert extract_domain("nobody") == ""


@pytest.mark.parametrize(
    "domain,expected",
    [
        ("acme.io", "Acme"),
        ("stripe.com", "Stripe"),
        ("acme.co.uk", "Acme"),
        ("my-co.vc", "My-co Vc"),
        ("eng.bigcorp.com", "Eng Bigcorp"),
        ("ACME.AI", "Acme"),
    ],
)
def test_normalize_company_name(domain, expected):
    assert normalize_company_name(domain) == expected
