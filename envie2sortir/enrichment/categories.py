"""
Correspondance activités -> tags de recherche, et rangement des tags
par catégorie d'affichage.
"""
from typing import Dict, List

PRIMARY_WEIGHT = 10
SECONDARY_WEIGHT = 7
RELATED_WEIGHT = 5

CATEGORY_TAGS_MAPPING: Dict[str, Dict[str, List[str]]] = {
    # Bars & boissons
    "bar_ambiance": {
        "primary": ["bar", "ambiance", "cocktails", "lounge"],
        "secondary": ["apéro", "terrasse", "musique", "chic", "élégant"],
        "related": ["soirée", "romantique", "after-work", "sophistiqué"],
    },
    "pub_traditionnel": {
        "primary": ["pub", "bière", "traditionnel", "sport"],
        "secondary": ["pression", "fish", "chips", "écrans", "convivial"],
        "related": ["anglaise", "décontracté", "entre potes", "sportif"],
    },
    "brasserie_artisanale": {
        "primary": ["brasserie", "artisanale", "bière", "craft"],
        "secondary": ["dégustation", "locale", "visite", "produits"],
        "related": ["authentique", "découverte", "artisanal", "terroir"],
    },
    "bar_cocktails": {
        "primary": ["bar", "cocktails", "mixologie", "spécialisé"],
        "secondary": ["signature", "bartender", "happy hour", "expert"],
        "related": ["sophistiqué", "créatif", "festif", "trendy"],
    },
    "bar_vins": {
        "primary": ["bar", "vins", "cave", "œnologie"],
        "secondary": ["dégustation", "accords", "mets-vins", "sommelier"],
        "related": ["raffiné", "culturel", "conviviale", "sélection"],
    },
    "bar_sports": {
        "primary": ["bar", "sport", "match", "écrans"],
        "secondary": ["géants", "retransmission", "pression", "supporters"],
        "related": ["sportive", "conviviale", "animée", "passion"],
    },
    "rooftop_bar": {
        "primary": ["rooftop", "terrasse", "panoramique", "bar"],
        "secondary": ["vue", "coucher", "soleil", "premium"],
        "related": ["romantique", "exclusive", "instagram", "haut"],
    },
    "bar_karaoke": {
        "primary": ["karaoké", "bar", "chanson", "cabines"],
        "secondary": ["privées", "playlist", "festive", "musique"],
        "related": ["amusant", "décontracté", "entre amis", "divertissement"],
    },
    # Restaurants
    "restaurant_gastronomique": {
        "primary": ["restaurant", "gastronomique", "chef", "étoilé"],
        "secondary": ["menu", "dégustation", "premium", "exceptionnel"],
        "related": ["raffiné", "étoilée", "exceptionnelle", "haute cuisine"],
    },
    "restaurant_traditionnel": {
        "primary": ["restaurant", "traditionnel", "français", "terroir"],
        "secondary": ["cuisine", "traditionnelle", "produits", "régionaux"],
        "related": ["authentique", "familiale", "terroir", "classique"],
    },
    "restaurant_familial": {
        "primary": ["restaurant", "familial", "enfant", "convivial"],
        "secondary": ["menu", "chaises", "hautes", "animations"],
        "related": ["générations", "décontracté", "abordable", "chaleureux"],
    },
    "bistrot": {
        "primary": ["bistrot", "quartier", "plat", "jour"],
        "secondary": ["ardoise", "prix", "doux", "locale"],
        "related": ["authentique", "simplicité", "traditionnel", "convivial"],
    },
    "restaurant_italien": {
        "primary": ["restaurant", "italien", "pizza", "pâtes"],
        "secondary": ["fraîches", "feu", "bois", "antipasti"],
        "related": ["famiglia", "méditerranéenne", "conviviale", "italienne"],
    },
    "restaurant_asiatique": {
        "primary": ["restaurant", "asiatique", "sushi", "wok"],
        "secondary": ["frais", "dim sum", "thé", "premium"],
        "related": ["zen", "exotique", "moderne", "épurée"],
    },
    "restaurant_oriental": {
        "primary": ["restaurant", "oriental", "couscous", "tajines"],
        "secondary": ["menthe", "pâtisseries", "orientales", "épices"],
        "related": ["chaleureuse", "conviviale", "orientale", "traditionnel"],
    },
    # Street food
    "kebab": {
        "primary": ["kebab", "sandwich", "viande", "grillée"],
        "secondary": ["livraison", "accessible", "rapide", "pratique"],
        "related": ["décontracté", "entre potes", "street food", "turc"],
    },
    "tacos_mexicain": {
        "primary": ["tacos", "mexicain", "guacamole", "sauces"],
        "secondary": ["piquantes", "emporter", "authentiques", "épicé"],
        "related": ["street food", "décontracté", "mexicaine", "rapide"],
    },
    "burger": {
        "primary": ["burger", "house", "frites", "artisanales"],
        "secondary": ["maison", "milkshakes", "ingrédients", "frais"],
        "related": ["américaine", "gourmande", "moderne", "trendy"],
    },
    "pizzeria": {
        "primary": ["pizzeria", "pizza", "feu", "bois"],
        "secondary": ["pâte", "maison", "livraison", "emporter"],
        "related": ["italienne", "conviviale", "rapide", "familiale"],
    },
    # Sorties nocturnes
    "discotheque": {
        "primary": ["discothèque", "danse", "dj", "piste"],
        "secondary": ["bar", "vestiaire", "nocturne", "énergique"],
        "related": ["festive", "dansante", "club", "musique"],
    },
    "club_techno": {
        "primary": ["club", "techno", "électro", "sound"],
        "secondary": ["system", "dj", "internationaux", "lights"],
        "related": ["underground", "intense", "rave", "électronique"],
    },
    # Loisirs
    "bowling": {
        "primary": ["bowling", "pistes", "chaussures", "location"],
        "secondary": ["snack", "anniversaires", "compétition", "famille"],
        "related": ["amusant", "décontracté", "sport", "loisir"],
    },
    "billard_americain": {
        "primary": ["billard", "américain", "billes", "queue"],
        "secondary": ["tables", "tournois", "compétition", "sport"],
        "related": ["précision", "stratégie", "décontracté", "loisir"],
    },
    "escape_game_horreur": {
        "primary": ["escape game", "horreur", "salles", "thématiques"],
        "secondary": ["frissons", "team building", "réservation", "challenge"],
        "related": ["adrénaline", "immersive", "énigme", "groupe"],
    },
    "karting": {
        "primary": ["karting", "circuit", "vitesse", "course"],
        "secondary": ["karts", "chronométrage", "compétition", "adrénaline"],
        "related": ["sport", "mécanique", "vitesse", "loisir"],
    },
    "laser_game": {
        "primary": ["laser game", "laser", "tactique", "équipe"],
        "secondary": ["salles", "thématiques", "réservation", "challenge"],
        "related": ["stratégie", "groupe", "amusant", "compétitif"],
    },
    "vr_experience": {
        "primary": ["vr", "réalité", "virtuelle", "casque"],
        "secondary": ["expérience", "immersive", "technologie", "nouveau"],
        "related": ["futuriste", "découverte", "original", "innovant"],
    },
    "autre": {
        "primary": ["autre", "activité", "spécialité", "unique"],
        "secondary": ["définir", "original", "insolite", "créatif"],
        "related": ["surprenant", "différent", "nouveau", "découverte"],
    },
}


def get_tags_for_activity(activity: str) -> List[dict]:
    """Tags pondérés d'une activité (vide si l'activité est inconnue)."""
    mapping = CATEGORY_TAGS_MAPPING.get(activity)
    if not mapping:
        return []
    weighted = []
    for key, weight in (("primary", PRIMARY_WEIGHT), ("secondary", SECONDARY_WEIGHT), ("related", RELATED_WEIGHT)):
        weighted.extend({"tag": tag, "weight": weight} for tag in mapping[key])
    return weighted


TAG_CATEGORY_KEYWORDS = (
    ("services-restauration", (
        "déjeuner", "dîner", "dessert", "repas", "service à table", "brunch", "petit-déjeuner", "goûter",
    )),
    ("ambiance-atmosphere", (
        "ambiance", "atmosphère", "romantique", "chaleureux", "décontracté", "chic", "cosy", "intimiste",
        "festif", "branché", "authentique", "moderne", "traditionnel", "vintage",
    )),
    ("commodites-equipements", (
        "wifi", "climatisation", "chauffage", "toilettes", "terrasse", "parking", "ascenseur", "vestiaire",
        "livraison", "emporter", "réservation",
    )),
    ("clientele-cible", (
        "groupe", "couple", "famille", "enfants", "étudiants", "seniors", "professionnels", "touristes",
        "locaux", "expatriés",
    )),
    ("activites-evenements", (
        "bowling", "escape", "karaoké", "concert", "spectacle", "danse", "musique", "événement",
        "anniversaire", "mariage",
    )),
)
DEFAULT_TAG_CATEGORY = "informations-pratiques"


def categorize_tag(tag: str) -> str:
    tag_lower = tag.lower()
    for category, keywords in TAG_CATEGORY_KEYWORDS:
        if any(keyword in tag_lower for keyword in keywords):
            return category
    return DEFAULT_TAG_CATEGORY


def organize_tags_by_category(tags: List[str]) -> Dict[str, List[str]]:
    organized: Dict[str, List[str]] = {}
    for tag in tags:
        organized.setdefault(categorize_tag(tag), []).append(tag)
    return organized
