from fastapi import APIRouter

from sitebuilder.api.v1.endpoints import auth, companies, sites

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(sites.router, prefix="/site", tags=["sites"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
