from fastapi import APIRouter
from campaign_tracker.api.routes import invoices, campaigns

api_router = APIRouter()
api_router.include_router(invoices.router)
api_router.include_router(campaigns.router)
