from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from baboo_api.config import settings
from baboo_api.database import get_db
from baboo_api.logging_config import get_logger, setup_logging
from baboo_api.models import ExpertAdminDM, Inquiry, User
from baboo_api.routers import acceptance, admin, conversations, external, inquiries, webhooks

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Baboo API",
    description="Backend service for the Baboo support-messaging dashboard",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhooks.router)
app.include_router(acceptance.router)
app.include_router(inquiries.router)
app.include_router(conversations.router)
app.include_router(external.router)
app.include_router(admin.router)


@app.on_event("startup")
async def log_configuration() -> None:
    logger.info(
        "Baboo API started",
        extra={
            "context": {
                "twilio_configured": bool(settings.twilio_account_sid and settings.twilio_auth_token),
                "main_webhook_configured": bool(settings.make_main_conversation_webhook_url),
                "traveler_dm_webhook_configured": bool(settings.make_traveler_dm_webhook_url),
                "webhook_validation": settings.twilio_validate_webhooks,
            }
        },
    )
    if not settings.make_main_conversation_webhook_url:
        logger.error("MAKE_MAIN_CONVERSATION_WEBHOOK_URL not set, main conversations use the fallback URL")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/db-check")
def db_check(db: Session = Depends(get_db)):
    return {
        "status": "ok",
        "users": db.query(User).count(),
        "inquiries": db.query(Inquiry).count(),
        "expert_admin_dms": db.query(ExpertAdminDM).count(),
    }
