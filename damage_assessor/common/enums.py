import enum


class Stage(str, enum.Enum):
    PRECONDITION = "precondition"
    DAMAGE = "damage"
    COMPLETION = "completion"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    QUERY = "query"
    REJECTED = "rejected"


class Severity(str, enum.Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Confidence(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PreflightIssue(str, enum.Enum):
    MISSING_DAMAGE_PHOTOS = "missing_damage_photos"
    MISSING_PRECONDITION_PHOTOS = "missing_precondition_photos"
    MISSING_COMPLETION_PHOTOS = "missing_completion_photos"
    MISSING_DETAILS_ROW = "missing_details_row"
    DETAILS_ROW_UNMATCHED = "details_row_unmatched"
    DETAILS_FILE_ERROR = "details_file_error"
