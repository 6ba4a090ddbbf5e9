from fastapi import APIRouter
from flexform.api.admin import templates, config

router = APIRouter()
router.include_router(templates.router, prefix="/templates", tags=["AdminTemplates"])
router.include_router(config.router, prefix="/config", tags=["AdminConfig"])
