from motor.motor_asyncio import AsyncIOMotorClient
from envie2sortir.config import settings

# Client MongoDB asynchrone (analytics uniquement)
client = AsyncIOMotorClient(settings.MONGO_URL)
db = client[settings.MONGO_DB]

# Collections
click_events_collection = db["click_events"]
search_events_collection = db["search_events"]
