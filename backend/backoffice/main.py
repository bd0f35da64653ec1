from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backoffice.core.config import settings
from backoffice.routers import coupons, plans

OPENAPI_TAGS = [
    {"name": "Plans", "description": "Plan catalog entries and their duration variants."},
    {"name": "Coupons", "description": "Create, validate and apply coupons; record usage."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Marketplace back office API for coupons: plan and variant applicability, "
        "discount calculation and usage accounting."
    ),
    openapi_tags=OPENAPI_TAGS,
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(plans.router, prefix="/v1/plans", tags=["Plans"])
app.include_router(coupons.router, prefix="/v1/coupons", tags=["Coupons"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
