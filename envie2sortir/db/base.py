# Importer tous les modèles pour enregistrer toutes les tables dans Base.metadata
from envie2sortir.db.session import Base  # noqa: F401
from envie2sortir.auth.models import User  # noqa: F401
from envie2sortir.professionals.models import Professional, SubscriptionLog, ProfessionalUpdateRequest  # noqa: F401
from envie2sortir.establishments.models import Establishment, EstablishmentTag, Image, Tariff, Menu  # noqa: F401
from envie2sortir.deals.models import DailyDeal, DealEngagement  # noqa: F401
from envie2sortir.events.models import Event, EventEngagement  # noqa: F401
from envie2sortir.comments.models import UserComment  # noqa: F401
from envie2sortir.users.models import UserFavorite  # noqa: F401
from envie2sortir.messaging.models import Conversation, Message  # noqa: F401
from envie2sortir.learning.models import EstablishmentLearningPattern  # noqa: F401
from envie2sortir.admin.models import AdminAction  # noqa: F401
