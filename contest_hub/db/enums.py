# db/enums.py
import enum

class TeamRole(enum.StrEnum):
    LEADER = "leader"
    MEMBER = "member"

class EnrollmentStatus(enum.StrEnum):
    # Declaration order is the display order; transitions are unrestricted.
    REGISTERED = "registered"
    QUALIFIED = "qualified"
    ROUND_1 = "round-1"
    ROUND_2 = "round-2"
    SEMI_FINALS = "semi-finals"
    FINALS = "finals"
    WINNER = "winner"
    ELIMINATED = "eliminated"

class FieldType(enum.StrEnum):
    TEXT = "text"
    LONG_TEXT = "comment"
    SINGLE_CHOICE = "radiogroup"
    MULTI_CHOICE = "checkbox"
    DROPDOWN = "dropdown"
    FILE = "file"

CHOICE_FIELD_TYPES = frozenset({FieldType.SINGLE_CHOICE, FieldType.MULTI_CHOICE, FieldType.DROPDOWN})

class CascadePolicy(enum.StrEnum):
    RETAIN = "retain"
    DELETE = "delete"
