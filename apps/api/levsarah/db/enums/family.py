"""Family profile, invite and registration enums."""

from enum import Enum


class Relationship(str, Enum):
    """Relationship of a family member to Abba."""

    SON = "בן"
    DAUGHTER = "בת"
    GRANDSON = "נכד"
    GRANDDAUGHTER = "נכדה"
    GREAT_GRANDDAUGHTER = "נינה"
    RELATIVE_MALE = "קרוב"
    RELATIVE_FEMALE = "קרובה"


# Registration menu: key the user types → relationship, in menu order
RELATIONSHIP_MENU = {
    "1": Relationship.SON,
    "2": Relationship.DAUGHTER,
    "3": Relationship.GRANDSON,
    "4": Relationship.GRANDDAUGHTER,
    "5": Relationship.GREAT_GRANDDAUGHTER,
    "6": Relationship.RELATIVE_MALE,
    "7": Relationship.RELATIVE_FEMALE,
}

RELATIONSHIP_LABELS_HE = {
    Relationship.SON: "בן",
    Relationship.DAUGHTER: "בת",
    Relationship.GRANDSON: "נכד",
    Relationship.GRANDDAUGHTER: "נכדה",
    Relationship.GREAT_GRANDDAUGHTER: "נינה",
    Relationship.RELATIVE_MALE: "קרוב משפחה",
    Relationship.RELATIVE_FEMALE: "קרובת משפחה",
}


class InviteStatus(str, Enum):
    """Status of a family invite."""

    PENDING = "pending"
    SENT = "sent"
    ACCEPTED = "accepted"
    FAILED = "failed"


class RegistrationStatus(str, Enum):
    """States of the WhatsApp registration conversation."""

    PENDING_DETAILS = "pending_details"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
