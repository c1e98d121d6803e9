import re
from datetime import datetime, timezone

import phonenumbers

from core.settings import settings


def utcnow() -> datetime:
    # Columns are stored naive, in UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_phone(phone: str, region: str = settings.DEFAULT_PHONE_REGION) -> str:
    clean = re.sub(r"[^\d+]", "", phone)
    parsed = phonenumbers.parse(clean, region)
    if not phonenumbers.is_valid_number(parsed):
        raise ValueError("Invalid phone number.")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def contains_ci(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def ordered_images(images) -> list:
    """Gallery order: ascending display_order, ties broken by upload time."""
    return sorted(
        images or [],
        key=lambda img: (img.display_order or 0, img.created_at or datetime.min),
    )


def thumbnail_url(images) -> str | None:
    ordered = ordered_images(images)
    return ordered[0].image_url if ordered else None
