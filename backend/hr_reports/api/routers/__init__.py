from fastapi import APIRouter

from hr_reports.api.routers.exports import router as exports_router
from hr_reports.api.routers.reports import router as reports_router


api_router = APIRouter()
api_router.include_router(reports_router, prefix="/reports", tags=["reports"])
api_router.include_router(exports_router, prefix="/exports", tags=["exports"])
