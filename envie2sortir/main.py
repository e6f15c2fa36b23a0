import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pathlib import Path

from envie2sortir.config import settings
import envie2sortir.db.base  # noqa: F401
from envie2sortir.csrf.middleware import csrf_middleware
from envie2sortir.admin.api import router as admin_router
from envie2sortir.analytics.api import router as analytics_router, admin_router as analytics_admin_router
from envie2sortir.auth.api import router as auth_router
from envie2sortir.comments.api import router as comments_router
from envie2sortir.csrf.api import router as csrf_router
from envie2sortir.deals.api import router as deals_router, admin_router as deals_admin_router
from envie2sortir.enrichment.api import router as enrichment_router
from envie2sortir.establishments.api import router as establishments_router
from envie2sortir.events.api import router as events_router, dashboard_router as events_dashboard_router
from envie2sortir.geo.api import router as geo_router
from envie2sortir.learning.api import router as learning_router
from envie2sortir.menus.api import router as menus_router, tariffs_router
from envie2sortir.messaging.api import router as messaging_router
from envie2sortir.newsletter.api import router as newsletter_router, admin_router as newsletter_admin_router
from envie2sortir.professionals.api import router as professionals_router
from envie2sortir.search.api import router as search_router
from envie2sortir.users.api import router as favorites_router
from envie2sortir.waitlist.api import router as waitlist_router

logging.basicConfig(level=settings.LOG_LEVEL)

app = FastAPI(title="Envie2Sortir API")

# Création dossier statique uploads
upload_dir = Path(settings.UPLOAD_DIR)
upload_dir.mkdir(parents=True, exist_ok=True)

# Monture des fichiers statiques
app.mount("/static", StaticFiles(directory=str(upload_dir.parent)), name="static")

app.include_router(auth_router)
app.include_router(csrf_router)
app.include_router(professionals_router)
app.include_router(waitlist_router)
app.include_router(establishments_router)
app.include_router(menus_router)
app.include_router(tariffs_router)
app.include_router(enrichment_router)
app.include_router(learning_router)
app.include_router(search_router)
app.include_router(geo_router)
app.include_router(deals_router)
app.include_router(deals_admin_router)
app.include_router(events_router)
app.include_router(events_dashboard_router)
app.include_router(comments_router)
app.include_router(favorites_router)
app.include_router(messaging_router)
app.include_router(newsletter_router)
app.include_router(newsletter_admin_router)
app.include_router(analytics_router)
app.include_router(analytics_admin_router)
app.include_router(admin_router)

# Vérification CSRF sur les requêtes qui modifient des données
app.middleware("http")(csrf_middleware)

# Middleware CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"message": "Bienvenue sur l'API Envie2Sortir !"}
