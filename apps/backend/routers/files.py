"""Files API: загрузка файлов базы знаний на платформу и их список."""
import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from apps.backend.auth import get_current_user_id
from apps.backend.deps import get_db, require_owned_assistant
from apps.backend.services.assistant_files import FileValidationError, list_vapi_files, upload_assistant_file
from apps.backend.utils.api_errors import error_response

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("")
def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    assistant_id: str | None = Form(None, alias="assistantId"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    if file is None:
        return error_response(request, "missing_file", "No file provided", 400)
    if not assistant_id:
        return error_response(request, "missing_assistant_id", "No assistant ID provided", 400)
    assistant = require_owned_assistant(db, user_id, assistant_id)
    content = file.file.read()
    try:
        out = upload_assistant_file(
            db,
            user_id,
            assistant,
            file.filename or "file",
            file.content_type or "",
            content,
        )
    except FileValidationError as e:
        logger.info("file_upload_rejected code=%s user_id=%s", e.code, user_id)
        return error_response(request, e.code, e.message, 400)
    return {"success": True, "file": out}


@router.get("")
def list_files(_: str = Depends(get_current_user_id)):
    return list_vapi_files()
