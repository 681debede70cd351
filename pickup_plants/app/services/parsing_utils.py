import re
from typing import Optional


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def parse_iso8601_duration(duration: str) -> Optional[int]:
    """Parse a minimal ISO-8601 duration string (e.g., PT1H30M) into minutes."""
    if not duration:
        return None
    match = re.fullmatch(r"PT?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?", duration.strip(), flags=re.I)
    if not match or not any(match.groups()):
        return None
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 60 + minutes + (1 if seconds >= 30 else 0)


def parse_minutes(value) -> Optional[int]:
    """Parse a minutes value from 25, "25", "25 mins", "1 hr 10 min" or "PT25M"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if re.fullmatch(r"-?\d+", text):
            return int(text)
        iso_minutes = parse_iso8601_duration(text)
        if iso_minutes is not None:
            return iso_minutes
        hours = re.search(r"(\d+)\s*(h|hr|hrs|hour|hours)\b", text, flags=re.I)
        minutes = re.search(r"(\d+)\s*(m|min|mins|minute|minutes)\b", text, flags=re.I)
        if hours or minutes:
            return int(hours.group(1) if hours else 0) * 60 + int(minutes.group(1) if minutes else 0)
    return None


def parse_servings(value) -> Optional[int]:
    """Parse servings from various formats."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        match = re.search(r"-?\d+", value)
        if match:
            return int(match.group())
    return None


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", clean_text(text).lower()).strip("-")
    return slug or "recipe"
