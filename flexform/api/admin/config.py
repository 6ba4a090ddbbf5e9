from fastapi import APIRouter, Depends

from flexform.core.deps import require_role
from flexform.schemas.forms import EncryptConfigPayload, UnlockPayload
from flexform.services.key_manager import generate_encrypted_config, get_service_key_unlocker

router = APIRouter()


@router.post("/unlock")
def unlock_service_key(payload: UnlockPayload, admin=Depends(require_role("admin"))):
    unlocker = get_service_key_unlocker()
    unlocker.unlock(payload.passphrase)
    return {"unlocked": unlocker.has_service_key()}


@router.post("/lock")
def lock_service_key(admin=Depends(require_role("admin"))):
    unlocker = get_service_key_unlocker()
    unlocker.clear_service_key()
    return {"unlocked": False}


@router.post("/encrypt")
def encrypt_service_key(payload: EncryptConfigPayload, admin=Depends(require_role("admin"))):
    return generate_encrypted_config(payload.service_key, payload.passphrase)
