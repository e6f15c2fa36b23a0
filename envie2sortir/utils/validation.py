from pydantic import ValidationError


def first_error_message(error: ValidationError, default: str = "Données invalides") -> str:
    """Premier message d'erreur pydantic, sans le préfixe ajouté par les validateurs."""
    errors = error.errors()
    if not errors:
        return default
    return errors[0].get("msg", default).removeprefix("Value error, ")
