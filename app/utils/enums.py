import enum


class ScoringType(str, enum.Enum):
    auto = "auto"
    manual = "manual"
    hybrid = "hybrid"


class SubmissionStatus(str, enum.Enum):
    in_progress = "in-progress"
    submitted = "submitted"
    graded = "graded"
    archived = "archived"


class AnswerStatus(str, enum.Enum):
    in_progress = "in-progress"
    submitted = "submitted"
    archived = "archived"


class ElementStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class AnswerKind(str, enum.Enum):
    """Matcher family of an expected answer, stored per field at save time."""
    boolean = "boolean"
    numeric = "numeric"
    text = "text"
    multi_select = "multi_select"
    essay = "essay"


class MatchingStrategy(str, enum.Enum):
    exact = "exact"
    fuzzy = "fuzzy"
    contains = "contains"


class ScoringMethod(str, enum.Enum):
    field_based = "field-based"
    standard = "standard"
