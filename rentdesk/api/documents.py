"""
Document endpoints.

GET /documents/{kind}/{ref} renders a business document as PDF. The caller's
bearer token is forwarded to the backend; disposition=inline opens the PDF in
the browser (preview, print), disposition=attachment downloads it under its
business file name.
"""
import logging
import re
import unicodedata
from typing import AsyncIterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from rentdesk.documents.canvas_renderer import render_pdf
from rentdesk.services.documents import DOCUMENT_KINDS, DocumentService
from rentdesk.services.errors import ApiError, ClientValidationError, NetworkError
from rentdesk.services.http_client import ApiClient
from rentdesk.services.session import MemoryTokenStore, Session

router = APIRouter()
logger = logging.getLogger(__name__)
security = HTTPBearer()


async def get_api_client(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AsyncIterator[ApiClient]:
    """Backend client acting with the caller's token"""
    session = Session(store=MemoryTokenStore())
    session.token = credentials.credentials
    client = ApiClient(session=session, expire_on_unauthorized=False)
    try:
        yield client
    finally:
        await client.aclose()


def get_document_service(client: ApiClient = Depends(get_api_client)) -> DocumentService:
    return DocumentService(client)


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ClientValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, NetworkError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
    if isinstance(exc, ApiError) and exc.status_code and exc.status_code < 500:
        return HTTPException(status_code=exc.status_code, detail=exc.backend_message or exc.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


def content_disposition(disposition: str, filename: str) -> str:
    """
    Header value for a business file name.

    Headers are latin-1 on the wire, so a name with Czech characters gets an
    ASCII transliteration in filename= and the exact name in filename*=.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    ascii_name = re.sub(r"[^A-Za-z0-9._-]", "-", ascii_name)
    if ascii_name == filename:
        return f'{disposition}; filename="{filename}"'
    return f"{disposition}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.get("/documents/{kind}/{ref}")
async def get_document(
    kind: str,
    ref: str,
    disposition: str = Query("inline", pattern="^(inline|attachment)$"),
    service: DocumentService = Depends(get_document_service)
):
    if kind not in DOCUMENT_KINDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown document type: {kind}")

    try:
        document = await service.build(kind, ref)
    except (ApiError, ClientValidationError) as e:
        logger.error(f"Document {kind}/{ref} failed: {e}")
        raise http_error(e)
    except ValidationError as e:
        logger.error(f"Document {kind}/{ref} has a malformed payload: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="The backend returned malformed document data.")

    pdf_data = await run_in_threadpool(render_pdf, document)
    return Response(
        content=pdf_data,
        media_type="application/pdf",
        headers={
            "Content-Disposition": content_disposition(disposition, document.filename)
        }
    )
