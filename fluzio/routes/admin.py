from fastapi import APIRouter, Depends

from fluzio.dependencies import get_document_store, get_notifier, get_storage_client
from fluzio.schemas import SweepReportResponse
from fluzio.services.notifications import Notifier
from fluzio.storage import StorageClient
from fluzio.store import DocumentStore
from fluzio.worker import archive_report, run_sweeps

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/sweeps/run", response_model=SweepReportResponse)
def run_sweeps_now(
    store: DocumentStore = Depends(get_document_store),
    notifier: Notifier = Depends(get_notifier),
    storage: StorageClient = Depends(get_storage_client),
):
    report = run_sweeps(store, notifier)
    archive_report(storage, report)
    return SweepReportResponse(report=report.to_dict(), errors=report.errors)
