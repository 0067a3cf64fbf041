from enum import Enum


class FilterMode(str, Enum):
    """Supported filter modes."""

    # Equality / membership
    EQ = "EQ"
    EX = "EX"

    # Ordering
    LT = "LT"
    GT = "GT"
    RG = "RG"

    # Null checks
    EM = "EM"
    NEM = "NEM"
