"""
Filtre de mots interdits pour les avis clients.

Liste française complétée de termes courants en anglais, espagnol,
italien, allemand, portugais et néerlandais.
"""
import re

from envie2sortir.utils.text import strip_accents

FRENCH_BAD_WORDS = [
    "merde", "putain", "connard", "salope", "encule", "foutre", "bordel",
    "con", "putes", "pute", "connasse", "salopard", "enfoire",
    "chier", "chiant", "baiser", "bite", "cul", "zizi", "couilles", "vagin",
    "salop", "fdp", "connas", "pd", "tapette",
    "sale", "degueulasse", "pourri", "nul", "merdique", "pourriture",
]

INTERNATIONAL_BAD_WORDS = [
    # Espagnol
    "cabron", "puta", "hijo de puta", "mierda", "joder", "puto", "hijoputa", "mamada",
    # Italien
    "merda", "cazzo", "bastardo", "puttana", "fottere", "fanculo", "stronzo",
    # Allemand
    "scheisse", "scheiss", "arschloch", "ficken", "wichser",
    # Portugais
    "porra", "foder", "caralho",
    # Néerlandais
    "kut", "kanker", "flikker",
    # Anglais et variantes masquées
    "f*ck", "f**k", "sh*t", "cr*p", "p*ss", "a*s",
    "fuck", "fucking", "bullshit", "damn", "shit", "asshole", "bitch", "bastard",
]

BAD_WORDS = sorted(set(FRENCH_BAD_WORDS + INTERNATIONAL_BAD_WORDS))

MIN_LENGTH = 10
MAX_LENGTH = 1000


class ModerationError(ValueError):
    pass


def _normalize(text: str) -> str:
    return strip_accents(text.lower()).replace("ß", "ss")


def _word_pattern(word: str) -> re.Pattern:
    # Les "*" des variantes masquées sont des caractères littéraux
    return re.compile(r"(?<![\w*])" + re.escape(word) + r"(?![\w*])")


_PATTERNS = [_word_pattern(word) for word in BAD_WORDS]


def is_profane(text: str) -> bool:
    normalized = _normalize(text)
    return any(pattern.search(normalized) for pattern in _PATTERNS)


def validate_comment_content(content: str) -> str:
    """Retourne le contenu nettoyé ou lève ModerationError."""
    cleaned = (content or "").strip()
    if len(cleaned) < MIN_LENGTH:
        raise ModerationError(f"Votre avis doit contenir au moins {MIN_LENGTH} caractères")
    if len(cleaned) > MAX_LENGTH:
        raise ModerationError(f"Votre avis ne peut pas dépasser {MAX_LENGTH} caractères")
    if is_profane(cleaned):
        raise ModerationError(
            "Votre avis contient des mots inappropriés. "
            "Veuillez reformuler votre message de manière respectueuse."
        )
    return cleaned
