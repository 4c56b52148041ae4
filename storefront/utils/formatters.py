from storefront.config import settings

def money(v: float) -> str:
    return f"{v:.{settings.decimals}f} {settings.currency}"
