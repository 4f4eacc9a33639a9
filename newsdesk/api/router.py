from __future__ import annotations

from fastapi import APIRouter

from newsdesk.api.auth_api import router as auth_router
from newsdesk.api.content_api import router as content_router
from newsdesk.api.cron_api import router as cron_router
from newsdesk.api.email_api import router as email_router
from newsdesk.api.ingestion_api import router as ingestion_router
from newsdesk.api.integrations_api import router as integrations_router
from newsdesk.api.meta_api import router as meta_router
from newsdesk.api.prompts_api import router as prompts_router
from newsdesk.api.redirect_api import router as redirect_router
from newsdesk.api.resend_api import router as resend_router
from newsdesk.api.sequences_api import router as sequences_router
from newsdesk.api.subscribers_api import router as subscribers_router
from newsdesk.api.templates_api import router as templates_router
from newsdesk.api.users_api import router as users_router
from newsdesk.api.weekly_api import router as weekly_router

router = APIRouter()

# Include sub-routers
router.include_router(meta_router)
router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(users_router, prefix="/users", tags=["users"])
router.include_router(content_router)
router.include_router(sequences_router, tags=["sequences"])
router.include_router(email_router, tags=["email"])
router.include_router(templates_router, prefix="/newsletter-templates", tags=["templates"])
router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
router.include_router(ingestion_router, prefix="/ingestion", tags=["ingestion"])
router.include_router(cron_router, prefix="/cron", tags=["cron"])
router.include_router(weekly_router, prefix="/weekly-newsletter", tags=["weekly-newsletter"])
router.include_router(integrations_router, prefix="/integrations", tags=["integrations"])
router.include_router(resend_router, prefix="/resend", tags=["resend"])
router.include_router(subscribers_router, tags=["subscribers"])
router.include_router(redirect_router, tags=["redirects"])
