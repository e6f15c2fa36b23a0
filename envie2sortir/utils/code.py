import secrets


def generate_verification_code(length: int = 6) -> str:
    """Code numérique à `length` chiffres (zéros initiaux conservés)."""
    return "".join(secrets.choice("0123456789") for _ in range(length))
