from enum import Enum


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    UPGRADE_REQUIRED = "UPGRADE_REQUIRED"
    LIMIT_REACHED = "LIMIT_REACHED"
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    PRO_REQUIRED = "PRO_REQUIRED"
    REQUEST_IN_FLIGHT = "REQUEST_IN_FLIGHT"
    ANALYSIS_TIMEOUT = "ANALYSIS_TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
