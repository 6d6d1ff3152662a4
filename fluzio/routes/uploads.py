from fastapi import APIRouter, Depends

from fluzio.dependencies import get_storage_client
from fluzio.schemas import SignUploadRequest, SignUrlResponse
from fluzio.storage import StorageClient, upload_path

router = APIRouter(tags=["uploads"])


@router.post("/uploads/sign-url", response_model=SignUrlResponse)
def sign_upload_url(
    payload: SignUploadRequest, storage: StorageClient = Depends(get_storage_client)
):
    """
    Presigned PUT for receipts, mission proofs and avatars. Clients upload the
    file directly and send the returned path back with their request.
    """
    path = upload_path(payload.kind, payload.user_id, payload.filename or "")
    url = storage.presign_put(path, expires_in=900, content_type=payload.content_type)
    return SignUrlResponse(url=url, path=path)
