import re
from collections import Counter
from typing import Iterable, List, Sequence

# Mots-clés caractéristiques de chaque type d'établissement
TYPE_KEYWORDS = {
    "parc_loisir_indoor": ["parc", "loisir", "indoor", "intérieur", "jeux", "games", "factory", "ludique", "famille", "enfants"],
    "escape_game": ["escape", "room", "énigme", "mystère", "puzzle", "défi", "challenge", "aventure", "donjon"],
    "vr_experience": ["vr", "virtual", "réalité", "virtuelle", "casque", "immersion", "simulation"],
    "karaoke": ["karaoké", "karaoke", "chanson", "micro", "cabine", "singing"],
    "restaurant": ["restaurant", "resto", "cuisine", "manger", "repas", "table"],
    "bar": ["bar", "boisson", "alcool", "cocktail", "bière", "vin"],
    "cinema": ["cinéma", "cinema", "film", "movie", "salle", "projection"],
}

KEYWORD_WEIGHT = 0.4
GOOGLE_TYPES_WEIGHT = 0.6
SUGGESTION_THRESHOLD = 0.3


def extract_keywords(text: str) -> List[str]:
    """
    Mots-clés de type présents dans le texte, puis mots de plus de
    3 lettres répétés. Ordre d'apparition conservé, sans doublons.
    """
    lowered = (text or "").lower()
    keywords: List[str] = []

    for type_keywords in TYPE_KEYWORDS.values():
        keywords.extend(keyword for keyword in type_keywords if keyword in lowered)

    words = [word for word in re.sub(r"[^\w\s]", " ", lowered).split() if len(word) > 2]
    counts = Counter(words)
    keywords.extend(word for word, count in counts.items() if count > 1 and len(word) > 3)

    return list(dict.fromkeys(keywords))


def calculate_similarity(
    text: str,
    pattern_keywords: Sequence[str],
    google_types: Iterable[str],
    pattern_google_types: Sequence[str],
) -> float:
    """
    40 % : part des mots-clés du motif présents dans le texte.
    60 % : part des types Google du motif partagés avec l'établissement.
    """
    lowered = (text or "").lower()
    similarity = 0.0

    if pattern_keywords:
        matches = sum(1 for keyword in pattern_keywords if keyword.lower() in lowered)
        similarity += (matches / len(pattern_keywords)) * KEYWORD_WEIGHT

    if pattern_google_types:
        types = set(google_types or [])
        common = sum(1 for google_type in pattern_google_types if google_type in types)
        similarity += (common / len(pattern_google_types)) * GOOGLE_TYPES_WEIGHT

    return min(similarity, 1.0)


def dedup_key(name: str, detected_type: str, confidence: float) -> str:
    """Clé de dédoublonnage : nom normalisé, type, confiance arrondie au 0.05."""
    rounded = round((confidence or 0) * 20) / 20
    return f"{(name or '').lower().strip()}|{detected_type}|{rounded}"


def deduplicate_patterns(patterns: Sequence) -> List:
    """
    Garde un motif par clé : un motif corrigé l'emporte sur un motif non
    corrigé, sinon le plus récent. Résultat trié du plus récent au plus ancien.
    """
    kept = {}
    for pattern in patterns:
        key = dedup_key(pattern.name, pattern.detected_type, pattern.confidence)
        current = kept.get(key)
        if current is None:
            kept[key] = pattern
        elif pattern.is_corrected and not current.is_corrected:
            kept[key] = pattern
        elif pattern.is_corrected == current.is_corrected and pattern.created_at > current.created_at:
            kept[key] = pattern
    return sorted(kept.values(), key=lambda p: p.created_at, reverse=True)
