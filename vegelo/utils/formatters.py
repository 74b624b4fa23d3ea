from vegelo.config import settings

def money(v: float) -> str:
    return f"{settings.currency} {v:.{settings.decimals}f}"


def quantity(v: float, unit: str) -> str:
    return f"{v:g} {unit}"
