from .base import Base
from .error_code import ErrorCode
from .problem import Problem

__all__ = [
    "Base",
    "ErrorCode",
    "Problem",
]
