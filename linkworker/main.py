import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkworker import auth, config, crud, database, models, pages, schemas

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("linkworker")

JSON_MEDIA_TYPE = "application/json;charset=UTF-8"
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

# POST routes that never claim a custom key
STATUS_PATH = "api-auth"
DELETE_PATH = "api/delete"
AUTO_KEY_PATHS = {"", "r"}


class JSONOut(JSONResponse):
    media_type = JSON_MEDIA_TYPE


def json_response(payload: BaseModel, status_code: int = 200) -> JSONOut:
    return JSONOut(payload.model_dump(exclude_none=True), status_code=status_code)

async def parse_body(request: Request) -> schemas.LinkRequest | None:
    """The request body as a LinkRequest, or None when it isn't a usable JSON object."""
    try:
        return schemas.LinkRequest.model_validate(await request.json())
    except ValueError:
        return None


def create_link(request: Request, path: str, body: schemas.LinkRequest, db: Session,
                settings: config.Settings) -> JSONOut:
    if not crud.check_url(body.url):
        raise HTTPException(status_code=400, detail="Invalid URL format.")
    url = body.url

    custom_key = body.custom_key
    if settings.routing_style == "path" and path not in AUTO_KEY_PATHS and "/" not in path:
        custom_key = path

    if custom_key:
        check = crud.check_custom_key(db, custom_key)
        if not check.available:
            raise HTTPException(status_code=400, detail=check.error or "Unknown error")
        # Lost a race against a concurrent claim of the same key
        if not crud.put_if_absent(db, custom_key, url):
            raise HTTPException(status_code=400, detail="Custom key already exists")
        if settings.unique_link:
            crud.index_url(db, url, custom_key)
        short_key = custom_key
        logger.info("Created link: key=%s target=%s (custom)", short_key, url)
    else:
        short_key = crud.find_existing_key(db, url) if settings.unique_link else None
        if short_key and crud.get_value(db, short_key) == url:
            logger.info("Reusing link: key=%s target=%s", short_key, url)
        else:
            short_key = crud.save_url(db, url, settings.key_length, settings.key_max_retries)
            if settings.unique_link:
                crud.index_url(db, url, short_key)
            logger.info("Created link: key=%s target=%s", short_key, url)

    base_url = f"{request.url.scheme}://{request.url.netloc}"
    return json_response(schemas.SuccessOut(
        short_key=short_key,
        short_url=f"{base_url}/{short_key}",
        original_url=url,
    ))

def remove_link(key: str, db: Session, settings: config.Settings) -> JSONOut:
    if not key or "/" in key or key in crud.RESERVED_KEYS:
        raise HTTPException(status_code=400, detail="You can't delete reserved key.")
    if not crud.is_short_key(key) or not crud.delete_link(db, key, settings.unique_link):
        raise HTTPException(status_code=400, detail="The short_key does not exist.")
    logger.info("Deleted link %s", key)
    return json_response(schemas.SuccessOut(data="Deleted successfully."))


def create_app(settings: config.Settings | None = None) -> FastAPI:
    settings = settings or config.load_settings()
    if not settings.access_password:
        logger.warning("API_KEY is not set; every authenticated request will be rejected")

    engine = database.make_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        models.Base.metadata.create_all(bind=engine)
        yield
        engine.dispose()

    # No docs routes: every single-segment path is a potential short key
    app = FastAPI(
        title="linkworker",
        description="Password-protected URL shortener over a key-value namespace.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.session_factory = database.make_sessionmaker(engine)

    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if settings.cors and (request.method == "OPTIONS" or content_type.startswith("application/json")):
            response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
        return json_response(schemas.ErrorOut(error=detail), exc.status_code)

    @app.exception_handler(crud.KeyGenerationError)
    async def key_generation_error(request: Request, exc: crud.KeyGenerationError):
        logger.error("Key generation failed: %s", exc)
        return json_response(schemas.ErrorOut(error="Failed to generate unique key."), 500)

    @app.options("/{path:path}", include_in_schema=False)
    def preflight():
        return Response(status_code=204, media_type=JSON_MEDIA_TYPE)

    @app.post("/{path:path}", include_in_schema=False)
    def handle_post(path: str, request: Request, body=Depends(parse_body), db=Depends(database.get_db)):
        if body is None:
            raise HTTPException(status_code=400, detail="Invalid JSON body.")
        auth.require_password(request, body, settings.access_password)

        if path == STATUS_PATH:
            return json_response(schemas.SuccessOut(
                data="Welcome! Administrator. The link worker is running.",
            ))
        if path == DELETE_PATH:
            if not body.short_key:
                raise HTTPException(status_code=400, detail="short_key is required.")
            return remove_link(body.short_key, db, settings)
        return create_link(request, path, body, db, settings)

    @app.get("/{path:path}", include_in_schema=False)
    def handle_get(path: str, request: Request, db=Depends(database.get_db)):
        key = path.split("/")[0]
        if not key or key in crud.GET_ONLY_KEYS:
            return pages.not_found()
        if key in crud.RESERVED_KEYS:
            return pages.asset(key)

        target = crud.get_value(db, key) if crud.is_short_key(key) else None
        if target is None:
            return pages.not_found()

        query = request.url.query
        full_url = f"{target}?{query}" if query else target
        if settings.no_ref:
            return pages.interstitial(full_url)
        return RedirectResponse(url=full_url, status_code=302)

    @app.delete("/{path:path}", include_in_schema=False)
    def handle_delete(path: str, request: Request, body=Depends(parse_body), db=Depends(database.get_db)):
        auth.require_password(request, body, settings.access_password)
        return remove_link(path, db, settings)

    return app


app = create_app()
