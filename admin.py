"""Admin console routes. Every route requires a bearer token with the admin role."""

import time
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

import config
import crud
import database
from auth import require_admin
from database import NEWEST, ORDERED, coll_name
from errors import NotFoundError, ValidationError
from mailer import Mailer, get_mailer
from media import (
    DOCUMENT_TYPES,
    MEDIA_TYPES,
    MediaHost,
    MediaRule,
    attach,
    check_attachments,
    download_url,
    get_media_host,
)
from pipeline import Payload, prepare_create, prepare_update, prepare_upsert, read_payload
from resolver import resolve_update, resolve_upsert, utcnow
from schemas import (
    Blog,
    Message,
    Profile,
    Project,
    ReorderRequest,
    ReplyRequest,
    Settings,
    Showcase,
    Skill,
    User,
    WorkExperience,
)
from validation import validate

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])

PROJECT_THUMBNAIL = MediaRule("thumbnail", "thumbnailUrl", "portfolio/projects/thumbnails")
PROJECT_IMAGES = MediaRule("images", "images", "portfolio/projects/images", many=True, max_files=10)
PROJECT_MEDIA = (PROJECT_THUMBNAIL, PROJECT_IMAGES)
BLOG_THUMBNAIL = MediaRule("thumbnail", "featuredImage", "portfolio/blogs/thumbnails")
BLOG_IMAGE = MediaRule("image", "url", "portfolio/blogs/images")
SHOWCASE_THUMBNAIL = MediaRule("thumbnail", "thumbnailUrl", "portfolio/showcase/thumbnails")
SHOWCASE_MEDIA = (
    SHOWCASE_THUMBNAIL,
    MediaRule("mediaUrl", "mediaUrl", "portfolio/showcase/media", allowed=MEDIA_TYPES),
)
SHOWCASE_UPLOAD = MediaRule("media", "mediaUrl", "portfolio/showcase/media", allowed=MEDIA_TYPES)
PROFILE_MEDIA = (MediaRule("avatar", "personalInfo.avatar", "portfolio/profile/avatars"),)
RESUME = MediaRule(
    "resume", "personalInfo.resume", "portfolio/resumes",
    allowed=DOCUMENT_TYPES, max_bytes=config.MAX_DOCUMENT_BYTES, resource_type="raw",
)

PERIODS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90}


def upload_only(payload: Payload, rule: MediaRule, host: MediaHost) -> Dict[str, Any]:
    """Upload the files of one form part without touching any document."""
    matched = check_attachments(payload.files, [rule])
    if not matched:
        raise ValidationError(rule.field, "No file uploaded")
    return attach({}, matched, [rule], host)


# Projects
@router.get("/projects")
def admin_list_projects():
    return crud.list_items(Project, sort=ORDERED)


@router.post("/projects", status_code=201)
def admin_create_project(payload: Payload = Depends(read_payload), host: MediaHost = Depends(get_media_host)):
    return crud.create_item(Project, prepare_create(Project, payload, PROJECT_MEDIA, host))


@router.post("/projects/reorder")
def admin_reorder_projects(body: ReorderRequest):
    return crud.reorder_items(Project, body)


@router.post("/projects/thumbnail")
def admin_upload_project_thumbnail(payload: Payload = Depends(read_payload),
                                   host: MediaHost = Depends(get_media_host)):
    result = upload_only(payload, PROJECT_THUMBNAIL, host)
    return {"message": "Thumbnail uploaded successfully", "thumbnailUrl": result["thumbnailUrl"]}


@router.get("/projects/{id}")
def admin_get_project(id: str):
    return crud.get_item(Project, id)


@router.put("/projects/{id}")
def admin_update_project(id: str, payload: Payload = Depends(read_payload),
                         host: MediaHost = Depends(get_media_host)):
    crud.require(Project, id)
    return crud.update_item(Project, id, prepare_update(Project, payload, PROJECT_MEDIA, host))


@router.delete("/projects/{id}")
def admin_delete_project(id: str):
    return crud.delete_item(Project, id)


@router.post("/projects/{id}/images")
def admin_upload_project_images(id: str, payload: Payload = Depends(read_payload),
                                host: MediaHost = Depends(get_media_host)):
    crud.require(Project, id)
    return {"urls": upload_only(payload, PROJECT_IMAGES, host)["images"]}


# Blogs
@router.get("/blogs")
def admin_list_blogs():
    return crud.list_items(Blog, sort=NEWEST)


@router.post("/blogs", status_code=201)
def admin_create_blog(payload: Payload = Depends(read_payload), host: MediaHost = Depends(get_media_host)):
    document = prepare_create(Blog, payload, (BLOG_THUMBNAIL,), host)
    if document.get("isPublished") and not document.get("publishedAt"):
        document["publishedAt"] = document["createdAt"]
    return crud.create_item(Blog, document)


@router.post("/blogs/thumbnail")
def admin_upload_blog_thumbnail(payload: Payload = Depends(read_payload),
                                host: MediaHost = Depends(get_media_host)):
    result = upload_only(payload, BLOG_THUMBNAIL, host)
    return {"message": "Thumbnail uploaded successfully", "featuredImage": result["featuredImage"]}


@router.put("/blogs/{id}")
def admin_update_blog(id: str, payload: Payload = Depends(read_payload),
                      host: MediaHost = Depends(get_media_host)):
    crud.require(Blog, id)
    return crud.update_item(Blog, id, prepare_update(Blog, payload, (BLOG_THUMBNAIL,), host))


@router.delete("/blogs/{id}")
def admin_delete_blog(id: str):
    return crud.delete_item(Blog, id)


@router.post("/blogs/{id}/image")
def admin_upload_blog_image(id: str, payload: Payload = Depends(read_payload),
                            host: MediaHost = Depends(get_media_host)):
    crud.require(Blog, id)
    return {"url": upload_only(payload, BLOG_IMAGE, host)["url"]}


@router.post("/blogs/{id}/publish")
def admin_publish_blog(id: str):
    now = utcnow()
    return crud.update_item(Blog, id, {"$set": {"isPublished": True, "publishedAt": now, "updatedAt": now}})


# Showcase
@router.get("/showcase")
def admin_list_showcase():
    return crud.list_items(Showcase, sort=ORDERED)


@router.post("/showcase", status_code=201)
def admin_create_showcase(payload: Payload = Depends(read_payload), host: MediaHost = Depends(get_media_host)):
    return crud.create_item(Showcase, prepare_create(Showcase, payload, SHOWCASE_MEDIA, host))


@router.post("/showcase/reorder")
def admin_reorder_showcase(body: ReorderRequest):
    return crud.reorder_items(Showcase, body)


@router.put("/showcase/{id}")
def admin_update_showcase(id: str, payload: Payload = Depends(read_payload),
                          host: MediaHost = Depends(get_media_host)):
    crud.require(Showcase, id)
    return crud.update_item(Showcase, id, prepare_update(Showcase, payload, SHOWCASE_MEDIA, host))


@router.delete("/showcase/{id}")
def admin_delete_showcase(id: str):
    return crud.delete_item(Showcase, id)


@router.post("/showcase/{id}/thumbnail")
def admin_upload_showcase_thumbnail(id: str, payload: Payload = Depends(read_payload),
                                    host: MediaHost = Depends(get_media_host)):
    crud.require(Showcase, id)
    result = upload_only(payload, SHOWCASE_THUMBNAIL, host)
    showcase = crud.update_item(Showcase, id, resolve_update(Showcase, validate(Showcase, result, partial=True)))
    return {
        "message": "Thumbnail uploaded and showcase item updated successfully",
        "thumbnailUrl": result["thumbnailUrl"],
        "showcase": showcase,
    }


@router.post("/showcase/{id}/upload")
def admin_upload_showcase_media(id: str, payload: Payload = Depends(read_payload),
                                host: MediaHost = Depends(get_media_host)):
    crud.require(Showcase, id)
    result = upload_only(payload, SHOWCASE_UPLOAD, host)
    showcase = crud.update_item(Showcase, id, resolve_update(Showcase, validate(Showcase, result, partial=True)))
    return {
        "message": "Media uploaded and showcase item updated successfully",
        "mediaUrl": result["mediaUrl"],
        "showcase": showcase,
    }


# Skills
@router.get("/skills")
def admin_list_skills():
    return crud.list_items(Skill, sort=ORDERED)


@router.post("/skills", status_code=201)
def admin_create_skill(payload: Payload = Depends(read_payload)):
    return crud.create_item(Skill, prepare_create(Skill, payload))


@router.post("/skills/reorder")
def admin_reorder_skills(body: ReorderRequest):
    return crud.reorder_items(Skill, body)


@router.put("/skills/{id}")
def admin_update_skill(id: str, payload: Payload = Depends(read_payload)):
    return crud.update_item(Skill, id, prepare_update(Skill, payload))


@router.delete("/skills/{id}")
def admin_delete_skill(id: str):
    return crud.delete_item(Skill, id)


# Experience
@router.get("/experience")
def admin_list_experience():
    return crud.list_items(WorkExperience, sort=ORDERED)


@router.post("/experience", status_code=201)
def admin_create_experience(payload: Payload = Depends(read_payload)):
    return crud.create_item(WorkExperience, prepare_create(WorkExperience, payload))


@router.post("/experience/reorder")
def admin_reorder_experience(body: ReorderRequest):
    return crud.reorder_items(WorkExperience, body)


@router.put("/experience/{id}")
def admin_update_experience(id: str, payload: Payload = Depends(read_payload)):
    return crud.update_item(WorkExperience, id, prepare_update(WorkExperience, payload))


@router.delete("/experience/{id}")
def admin_delete_experience(id: str):
    return crud.delete_item(WorkExperience, id)


# Profile (singleton)
@router.get("/profile")
def admin_get_profile():
    return crud.get_singleton(Profile) or {}


@router.put("/profile")
def admin_update_profile(payload: Payload = Depends(read_payload), host: MediaHost = Depends(get_media_host)):
    return crud.upsert_singleton(Profile, prepare_upsert(Profile, payload, PROFILE_MEDIA, host))


@router.post("/profile/resume")
def admin_upload_resume(payload: Payload = Depends(read_payload), host: MediaHost = Depends(get_media_host)):
    matched = check_attachments(payload.files, [RESUME])
    if not matched:
        raise ValidationError("resume", "No file uploaded")
    resume = matched["resume"][0]
    ext = resume.extension or "pdf"
    result = host.upload(
        resume.data,
        folder=RESUME.folder,
        resource_type="raw",
        format="pdf" if ext == "pdf" else None,
        public_id=f"resume_{int(time.time() * 1000)}.{ext}",
        filename=resume.filename,
        content_type=resume.content_type,
    )
    personal_info = {
        "resume": result.url,
        "resumeDownloadUrl": download_url(result),
        "resumeFileName": resume.filename,
        "resumeFileType": resume.content_type,
    }
    validated = validate(Profile, {"personalInfo": personal_info}, partial=True)
    profile = crud.upsert_singleton(Profile, resolve_upsert(Profile, validated))
    return {
        "message": "Resume uploaded successfully",
        "resumeUrl": result.url,
        "downloadUrl": personal_info["resumeDownloadUrl"],
        "fileName": resume.filename,
        "fileType": resume.content_type,
        "profile": profile,
    }


@router.get("/profile/resume/download")
def admin_download_resume():
    return resume_redirect(crud.get_singleton(Profile))


def resume_redirect(profile: Optional[Dict[str, Any]]):
    resume = ((profile or {}).get("personalInfo") or {}).get("resume")
    if not resume:
        raise NotFoundError("Resume")
    info = profile["personalInfo"]
    file_name = info.get("resumeFileName") or "resume.pdf"
    return RedirectResponse(
        url=resume,
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Cache-Control": "no-cache",
        },
    )


# Settings (singleton)
@router.get("/settings")
def admin_get_settings():
    return crud.get_singleton(Settings)


@router.put("/settings")
def admin_update_settings(payload: Payload = Depends(read_payload)):
    existing = database.find_one(coll_name(Settings), projection=["_id"])
    if existing is None:
        return crud.create_item(Settings, prepare_create(Settings, payload))
    return crud.update_item(Settings, str(existing["_id"]), prepare_update(Settings, payload))


# Messages
@router.get("/messages")
def admin_list_messages(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                        read: Optional[bool] = None):
    filters = {} if read is None else {"isRead": read}
    messages = crud.list_items(Message, filters, sort=NEWEST, limit=limit, skip=(page - 1) * limit)
    total = database.count(coll_name(Message), filters)
    return {"messages": messages, "total": total, "page": page, "limit": limit}


@router.post("/messages/{id}/read")
def admin_mark_message_read(id: str):
    return crud.update_item(Message, id, {"$set": {"isRead": True, "updatedAt": utcnow()}})


@router.post("/messages/{id}/reply")
def admin_reply_message(id: str, body: ReplyRequest, mailer: Mailer = Depends(get_mailer)):
    message = crud.get_item(Message, id)
    # Sent before recording, so a failed delivery never marks the message replied.
    mailer.send(message["email"], f"Re: {message['subject']}", body.reply)
    now = utcnow()
    return crud.update_item(Message, id, {
        "$set": {"isReplied": True, "reply": body.reply, "repliedAt": now, "updatedAt": now},
    })


@router.delete("/messages/{id}")
def admin_delete_message(id: str):
    return crud.delete_item(Message, id)


# Analytics
@router.get("/analytics")
def admin_analytics_overview():
    blog_views = database.sum_field(coll_name(Blog), "views", {"isPublished": True})
    project_views = database.sum_field(coll_name(Project), "views", {"isActive": True})
    return {
        "users": database.count(coll_name(User)),
        "projects": database.count(coll_name(Project), {"isActive": True}),
        "blogs": database.count(coll_name(Blog), {"isPublished": True}),
        "views": blog_views + project_views,
        "messages": database.count(coll_name(Message)),
    }


@router.get("/analytics/recent-activity")
def admin_recent_activity():
    def recent(model_cls, fields):
        return crud.list_items(model_cls, sort=NEWEST, limit=5, projection=fields + ["createdAt"])

    return {
        "recentProjects": recent(Project, ["title"]),
        "recentBlogs": recent(Blog, ["title"]),
        "recentMessages": recent(Message, ["name", "email"]),
        "recentShowcase": recent(Showcase, ["title"]),
    }


def views_by_day(model_cls, period: str, count_key: str):
    since = utcnow() - timedelta(days=PERIODS.get(period, 7))
    per_day = database.aggregate(coll_name(model_cls), [
        {"$match": {"createdAt": {"$gte": since}}},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$createdAt"}},
            "totalViews": {"$sum": "$views"},
            count_key: {"$sum": 1},
        }},
        {"$sort": {"_id": 1}},
    ])
    top = crud.list_items(model_cls, sort=[("views", -1)], limit=10, projection=["title", "views", "createdAt"])
    return per_day, top


@router.get("/analytics/blog-views")
def admin_blog_views(period: str = "7d"):
    per_day, top = views_by_day(Blog, period, "blogCount")
    return {"period": period, "blogViews": per_day, "topBlogs": top}


@router.get("/analytics/project-views")
def admin_project_views(period: str = "7d"):
    per_day, top = views_by_day(Project, period, "projectCount")
    return {"period": period, "projectViews": per_day, "topProjects": top}
