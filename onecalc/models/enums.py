from enum import Enum


class Category(str, Enum):
    COST = "cost"
    REVENUE = "revenue"


class ModuleKind(str, Enum):
    COSTS = "costs"
    REVENUE = "revenue"
    CALCULATOR = "calculator"


class SessionState(str, Enum):
    IDLE = "idle"
    COMPILE_PENDING = "compile_pending"
    COMPILED = "compiled"
