"""
Artifact ingestion API
Accepts base64 JPEG uploads and serves a paginated listing of stored artifacts
"""
from typing import Optional
import json
import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import SessionLocal, init_db
from .errors import (
    ArtifactError,
    JSONParseError,
    QueryParamError,
    RepositoryError,
    RequestBodyError,
)
from .filesystem import OsFilesystem
from .repository import SqlArtifactRepository
from .schemas import ArtifactInput, ArtifactRecordOut
from .service import ArtifactService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

UNSUPPORTED_METHOD_MESSAGE = "Sorry, only GET and POST methods are supported."

router = APIRouter()


def get_service(request: Request) -> ArtifactService:
    return request.app.state.artifact_service


def parse_page(page: Optional[str]) -> int:
    """Parse the `page` query parameter; raises QueryParamError when missing or not an integer"""
    if page is None or not page.strip():
        raise QueryParamError("Cannot find query param 'page'")
    try:
        return int(page)
    except ValueError as e:
        raise QueryParamError(f"Invalid query param page={page!r}") from e


def parse_artifact_body(body: bytes) -> ArtifactInput:
    if not body:
        raise RequestBodyError("Received an empty body")
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise JSONParseError(f"Received invalid JSON: {e}") from e
    try:
        return ArtifactInput.model_validate(payload)
    except ValidationError as e:
        raise JSONParseError(f"Received invalid JSON: {e.error_count()} validation error(s)") from e


@router.get("/health")
def health_check():
    return {"status": "alive"}


@router.get("/artifact")
def list_artifacts(
    page: Optional[str] = Query(None),
    service: ArtifactService = Depends(get_service),
):
    """List one page of artifact records (missing or invalid page falls back to page 1)"""
    try:
        current_page = parse_page(page)
    except QueryParamError as e:
        logger.warning(f"{e}; defaulting to page 1")
        current_page = 1

    try:
        entries = service.list(current_page)
    except RepositoryError as e:
        logger.error(f"action=list page={current_page} error={e}")
        raise HTTPException(status_code=500, detail=str(e))

    return [
        ArtifactRecordOut.model_validate(entry).model_dump(mode="json", by_alias=True)
        for entry in entries
    ]


@router.post("/artifact")
async def upload_artifact(request: Request, service: ArtifactService = Depends(get_service)):
    """Store a base64 JPEG and record its metadata"""
    try:
        body = await request.body()
    except Exception as e:
        logger.error(f"Could not read request body: {e}")
        raise HTTPException(status_code=500, detail="Could not read request body")

    try:
        entry = parse_artifact_body(body)
        record = await run_in_threadpool(service.upload, entry)
    except RepositoryError as e:
        logger.error(f"action=upload error={e}")
        raise HTTPException(status_code=500, detail=str(e))
    except ArtifactError as e:
        logger.info(f"action=upload rejected={type(e).__name__} detail={e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info(f"action=upload url={record.url!r} type={record.file_type}")
    return ArtifactRecordOut.model_validate(record).model_dump(mode="json", by_alias=True)


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """Any method other than GET or POST on /artifact gets a plain-text notice"""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED and request.url.path == "/artifact":
        return PlainTextResponse(UNSUPPORTED_METHOD_MESSAGE)
    return await http_exception_handler(request, exc)


def create_app(service: Optional[ArtifactService] = None) -> FastAPI:
    """Build the app around one composed service; defaults to the OS filesystem and SQL repository"""
    if service is None:
        init_db()
        service = ArtifactService(OsFilesystem(), SqlArtifactRepository(SessionLocal))

    app = FastAPI(title="Artifact Ingestion API")
    app.state.artifact_service = service
    app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8090)
