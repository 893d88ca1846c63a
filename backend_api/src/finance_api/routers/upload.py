import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlmodel import Session

from ..config import get_settings
from ..db import get_session
from ..importer import SAMPLE_FORMAT, SpreadsheetImportError, import_transactions
from ..models import User
from ..schemas import SampleFormat, UploadResponse
from ..security import get_current_user
from .transactions import to_transaction_read

logger = logging.getLogger(__name__)

upload_router = APIRouter(prefix="/upload", tags=["upload"])


# PUBLIC_INTERFACE
@upload_router.post(
    "/excel",
    response_model=UploadResponse,
    summary="Import transactions from Excel",
    description="Upload an .xlsx statement (Date | Description | Amount | Reference). Rows are auto-categorized.",
)
def upload_excel(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> UploadResponse:
    """Import every parsable row of the first worksheet as a transaction."""
    limit = get_settings().max_upload_bytes
    content = file.file.read(limit + 1)
    if len(content) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the maximum upload size of {limit} bytes",
        )

    try:
        result = import_transactions(session, user, file.filename, content)
    except SpreadsheetImportError as exc:
        logger.warning("Rejected upload %s from %s: %s", file.filename, user.username, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return UploadResponse(
        message="File uploaded and processed successfully",
        transactions_processed=len(result.transactions),
        skipped_rows=result.skipped_rows,
        transactions=[to_transaction_read(t) for t in result.transactions],
    )


# PUBLIC_INTERFACE
@upload_router.get("/sample-format", response_model=SampleFormat, summary="Expected spreadsheet layout")
def sample_format() -> SampleFormat:
    return SampleFormat(**SAMPLE_FORMAT)
