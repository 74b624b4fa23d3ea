from typing import Dict, List


def require_positive_number(v: float, name: str = "value") -> None:
    if v <= 0:
        raise ValueError(f"{name} must be > 0")


def require_non_negative_number(v: float, name: str = "value") -> None:
    if v < 0:
        raise ValueError(f"{name} must be >= 0")


def missing_fields(data: Dict[str, object]) -> List[str]:
    return [k for k, v in data.items() if v is None or not str(v).strip()]
