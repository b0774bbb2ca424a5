from fastapi import APIRouter, Depends

from damage_assessor.api.deps import ensure_schema
from damage_assessor.api.routes.assessments import router as assessments_router
from damage_assessor.api.routes.health import router as health_router
from damage_assessor.api.routes.uploads import router as uploads_router

api_router = APIRouter(dependencies=[Depends(ensure_schema)])

api_router.include_router(health_router)
api_router.include_router(uploads_router)
api_router.include_router(assessments_router)
