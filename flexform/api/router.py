from fastapi import APIRouter
from flexform.api import auth, forms, submissions, exports
from flexform.api.admin.router import router as admin_router

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(forms.router, prefix="/forms", tags=["Forms"])
router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
router.include_router(exports.router, prefix="/exports", tags=["Exports"])
router.include_router(admin_router, prefix="/admin")
