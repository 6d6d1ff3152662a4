from fastapi import APIRouter

from fluzio.schemas import StatusResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=StatusResponse)
def health():
    return StatusResponse(status="ok")
