import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import config
import crud
import database
from admin import resume_redirect, router as admin_router
from coercion import coerce
from database import NEWEST, ORDERED, coll_name
from errors import InfrastructureError, NotFoundError, PortfolioError, UpstreamError
from logs import RequestLoggingMiddleware, configure_logging, get_logger
from pipeline import Payload, prepare_create, read_payload
from resolver import resolve_update
from schemas import Blog, LoginRequest, Message, Profile, Project, Showcase, Skill, User, UserProfile, WorkExperience
from validation import validate

configure_logging()
log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes()
        auth.ensure_admin_user()
    else:
        log.warning("database_not_configured")
    yield


app = FastAPI(title="Portfolio API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# Error responses are always {"message": ...}
@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    if isinstance(exc, (UpstreamError, InfrastructureError)):
        cause = getattr(exc, "cause", None)
        log.error("request_failed", path=request.url.path, error=type(exc).__name__,
                  cause=repr(cause) if cause else None)
    return JSONResponse(exc.to_response(), status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = exc.errors()[0]
    field = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
    message = error.get("msg", "Invalid request")
    return JSONResponse({"message": f"{field}: {message}" if field else message, "field": field},
                        status_code=400)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    log.exception("unhandled_error", path=request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


@app.get("/")
def root():
    return {"message": "Portfolio API running"}


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Portfolio API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    status = database.ping()
    if database.db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = status["database_name"] or "✅ Connected"
        response["connection_status"] = "Connected"
        response["collections"] = status["collections"]
        if status["connected"]:
            response["database"] = "✅ Connected & Working"
        else:
            response["database"] = f"⚠️ Connected but Error: {status.get('error', '')}"
    return response


# Auth
@app.post("/api/auth/login")
def login(data: LoginRequest):
    user = auth.authenticate(data.email, data.password)
    token = auth.create_access_token(str(user["_id"]), user.get("role", "user"))
    profile = crud.as_serializable(user)
    return {"token": token, "user": {"email": profile["email"], "role": profile.get("role"),
                                     "profile": profile.get("profile") or {}}}


@app.post("/api/auth/logout")
def logout(user: dict = Depends(auth.get_current_user)):
    # Tokens are stateless; the client drops it.
    return {"message": "Logged out"}


@app.post("/api/auth/refresh", status_code=501)
def refresh():
    return {"message": "Not implemented"}


@app.get("/api/auth/profile")
def get_user_profile(user: dict = Depends(auth.get_current_user)):
    return {"user": crud.get_item(User, user["id"])}


@app.put("/api/auth/profile")
def update_user_profile(payload: Payload = Depends(read_payload), user: dict = Depends(auth.get_current_user)):
    validated = validate(UserProfile, coerce(UserProfile, payload.data), partial=True)
    updated = crud.update_item(User, user["id"], resolve_update(User, {"profile": validated}))
    return {"user": {"email": updated["email"], "role": updated.get("role"), "profile": updated.get("profile") or {}}}


# Profile
@app.get("/api/profile")
def get_profile():
    profile = crud.get_singleton(Profile, {"isActive": True})
    if not profile:
        raise NotFoundError("Profile")
    return profile


@app.get("/api/profile/resume/download")
def download_resume():
    return resume_redirect(crud.get_singleton(Profile, {"isActive": True}))


# Projects
@app.get("/api/projects")
def get_projects():
    return crud.list_items(Project, {"isActive": True}, sort=ORDERED)


@app.get("/api/projects/{id}")
def get_project(id: str):
    return crud.get_item(Project, id, {"isActive": True})


# Blogs
@app.get("/api/blogs")
def get_blogs():
    return crud.list_items(Blog, {"isPublished": True}, sort=[("publishedAt", -1)] + NEWEST)


@app.get("/api/blogs/{slug}")
def get_blog(slug: str):
    blog = database.find_one(coll_name(Blog), {"slug": slug, "isPublished": True})
    if not blog:
        raise NotFoundError("Blog")
    return crud.as_serializable(blog)


@app.get("/api/skills")
def get_skills():
    return crud.list_items(Skill, {"isActive": True}, sort=ORDERED)


@app.get("/api/experience")
def get_experience():
    return crud.list_items(WorkExperience, {"isActive": True}, sort=ORDERED)


@app.get("/api/showcase")
def get_showcase():
    return crud.list_items(Showcase, {"isActive": True}, sort=ORDERED)


# Contact
@app.post("/api/contact", status_code=201)
def send_message(payload: Payload = Depends(read_payload)):
    document = prepare_create(Message, payload)
    # Read/replied state is owned by the admin console.
    document.update({"isRead": False, "isReplied": False})
    for key in ("reply", "repliedAt"):
        document.pop(key, None)
    return {"message": "Message sent", "data": crud.create_item(Message, document)}


app.include_router(admin_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
