"""
Règles d'affichage et d'activité des bons plans.

Les fonctions acceptent l'objet ORM ``DailyDeal`` comme tout objet
exposant les mêmes attributs, et un ``now`` optionnel (heure locale
naïve) pour rester testables.
"""
from datetime import datetime
from typing import Optional

DAY_NAMES = ["", "Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche"]
WEEKDAY_NAMES = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
MONTH_NAMES = [
    "", "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=None) if value.tzinfo else value


def is_deal_active(deal, now: Optional[datetime] = None) -> bool:
    if not deal.is_active:
        return False

    now = _naive(now) or datetime.now()

    if deal.is_recurring:
        end = _naive(deal.recurrence_end_date)
        if end and now > end:
            return False

        if deal.recurrence_type == "weekly" and deal.recurrence_days:
            # isoweekday: 1 = lundi ... 7 = dimanche
            if now.isoweekday() not in deal.recurrence_days:
                return False
        # monthly : aucune restriction de jour
    else:
        if now < _naive(deal.date_debut) or now > _naive(deal.date_fin):
            return False

    if not deal.heure_debut and not deal.heure_fin:
        return True

    current_time = now.strftime("%H:%M")
    if deal.heure_debut and not deal.heure_fin:
        return current_time >= deal.heure_debut
    if not deal.heure_debut and deal.heure_fin:
        return current_time <= deal.heure_fin
    return deal.heure_debut <= current_time <= deal.heure_fin


def _format_day_month(value: datetime) -> str:
    return f"{value.day} {MONTH_NAMES[value.month]}"


def _format_long_date(value: datetime) -> str:
    return f"{WEEKDAY_NAMES[value.weekday()]} {_format_day_month(value)}"


def _hours_suffix(deal) -> str:
    if deal.heure_debut and deal.heure_fin:
        return f" de {deal.heure_debut} à {deal.heure_fin}"
    return ""


def format_deal_time(deal, now: Optional[datetime] = None) -> str:
    """Texte d'horaires affiché sur la carte du bon plan."""
    if deal.is_recurring:
        if deal.recurrence_type == "weekly" and deal.recurrence_days:
            days = ", ".join(DAY_NAMES[day] for day in deal.recurrence_days if 1 <= day <= 7)
            return f"Tous les {days}{_hours_suffix(deal)}"
        if deal.recurrence_type == "monthly":
            return f"Tous les mois{_hours_suffix(deal)}"
        return f"Tous les jours{_hours_suffix(deal)}"

    if _same_day(deal):
        return format_deal_date(deal, now) + _hours_suffix(deal)
    return format_deal_date(deal, now)


def _same_day(deal) -> bool:
    return _naive(deal.date_debut).date() == _naive(deal.date_fin).date()


def format_deal_date(deal, now: Optional[datetime] = None) -> str:
    now = _naive(now) or datetime.now()
    start = _naive(deal.date_debut)
    end = _naive(deal.date_fin)

    if _same_day(deal):
        if start.date() == now.date():
            return "Aujourd'hui"
        return f"Le {_format_long_date(start)}"
    return f"Du {_format_day_month(start)} au {_format_day_month(end)}"


def format_price(price: Optional[float]) -> str:
    if price is None:
        return ""
    return f"{price:.2f} €"


def calculate_discount(original_price: Optional[float], discounted_price: Optional[float]) -> int:
    if not original_price or not discounted_price or original_price <= discounted_price:
        return 0
    return round((original_price - discounted_price) / original_price * 100)
