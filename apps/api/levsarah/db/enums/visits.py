"""Visit slot enums."""

from enum import Enum


class TimeSlot(str, Enum):
    """The three bookable cells of a day, in calendar order."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


# Visit start hour (UTC) per slot; reminders are due 24h before start.
SLOT_START_HOURS = {
    TimeSlot.MORNING: 7,
    TimeSlot.AFTERNOON: 12,
    TimeSlot.EVENING: 16,
}

SLOT_ORDER = {slot: index for index, slot in enumerate(TimeSlot)}

SLOT_LABELS_HE = {
    TimeSlot.MORNING: "בוקר",
    TimeSlot.AFTERNOON: "צהריים",
    TimeSlot.EVENING: "ערב",
}

# Indexed by Python's date.weekday() (Monday == 0)
WEEKDAY_NAMES_HE = (
    "יום שני",
    "יום שלישי",
    "יום רביעי",
    "יום חמישי",
    "יום שישי",
    "שבת",
    "יום ראשון",
)
