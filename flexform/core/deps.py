from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from flexform.core.config import settings
from flexform.core.security import decode_jwt
from flexform.services.key_manager import KeyManager, get_key_manager, get_service_key_unlocker
from flexform.services.kv_store import KeyValueStore, get_kv_store
from flexform.services.store_client import SubmissionStoreClient, build_store_client
from flexform.services.templates import DraftRepository, ProfileCache, TemplateRepository

bearer = HTTPBearer(auto_error=False)

def get_current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Missing authorization token")
    try:
        return decode_jwt(creds.credentials, settings.USER_JWT_SECRET)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")

def require_role(*roles: str):
    def _inner(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user
    return _inner

def get_store() -> KeyValueStore:
    return get_kv_store()

def get_templates(store: KeyValueStore = Depends(get_store)) -> TemplateRepository:
    return TemplateRepository(store)

def get_drafts(store: KeyValueStore = Depends(get_store)) -> DraftRepository:
    return DraftRepository(store)

def get_profiles(store: KeyValueStore = Depends(get_store)) -> ProfileCache:
    return ProfileCache(store)

def get_submission_store() -> SubmissionStoreClient:
    unlocker = get_service_key_unlocker()
    # Prefer the key unlocked through /api/admin/config/unlock.
    if unlocker.has_service_key():
        return build_store_client(unlocker.unlock(None))
    return build_store_client()

def get_field_key_manager() -> KeyManager:
    return get_key_manager()
