import logging

from fastapi import APIRouter, Depends, HTTPException

from flexform.core.config import settings
from flexform.core.security import create_user_token, verify_password
from flexform.core.deps import get_current_user, get_profiles
from flexform.schemas.forms import SessionCreate
from flexform.services.form_renderer import EMAIL_RE
from flexform.services.templates import ProfileCache

router = APIRouter()
_LOG = logging.getLogger("flexform.auth")


def _role_for(email: str, password: str | None) -> str:
    """Admin only for a listed email presenting the admin password; a listed
    email without a password still gets a plain portal session."""
    if email not in settings.admin_emails_list or not password:
        return "user"
    if not verify_password(password, settings.ADMIN_PASSWORD_HASH):
        _LOG.warning("admin session refused email=%s", email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return "admin"


@router.post("/session")
def create_session(payload: SessionCreate, profiles: ProfileCache = Depends(get_profiles)):
    email = payload.email.strip().lower()
    if not EMAIL_RE.match(email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    department = payload.department.strip() or "general"
    role = _role_for(email, payload.password)
    token = create_user_token(
        email,
        department,
        role,
        settings.USER_JWT_SECRET,
        settings.USER_JWT_TTL_MINUTES,
    )
    profiles.save(url=payload.supabase_url or settings.SUPABASE_URL, email=email, department=department)
    return {"access_token": token, "token_type": "bearer", "email": email, "department": department, "role": role}


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return {"email": user.get("email"), "department": user.get("department"), "role": user.get("role")}


@router.get("/profile")
def cached_profile(profiles: ProfileCache = Depends(get_profiles)):
    return {"profile": profiles.load()}
