"""
Database Schemas for the Portfolio CMS

Each Pydantic model represents a collection in MongoDB. The collection name is the
lowercase of the class name (e.g., Project -> "project").

Attributes are declared in snake_case; documents and request bodies use the
camelCase aliases (is_active -> "isActive"). These declarations are the single
source of truth for coercion, validation and defaults: a field's annotation
decides how wire strings are coerced, `Field(...)` marks it required, and its
default is applied on create only.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Content
class Project(Document):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    short_description: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list, description="Gallery image URLs, display order")
    technologies: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    category: Literal["web", "mobile", "desktop", "api", "other"]
    status: Literal["completed", "in-progress", "planned"]
    is_featured: bool = False
    is_active: bool = True
    order: int = 0
    views: int = 0


class Blog(Document):
    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1, description="Unique, used in public URLs")
    excerpt: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    featured_image: Optional[str] = None
    redirect_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: str = Field(..., min_length=1)
    reading_time: int
    is_published: bool = False
    is_featured: bool = False
    views: int = 0
    likes: int = 0
    published_at: Optional[datetime] = None


class Showcase(Document):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: Literal["image", "video", "demo", "certificate"]
    media_url: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = None
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True
    order: int = 0


class Skill(Document):
    name: str = Field(..., min_length=1)
    category: Literal["frontend", "backend", "database", "devops", "tools", "soft"]
    level: Literal["beginner", "intermediate", "advanced", "expert"]
    icon: Optional[str] = None
    description: Optional[str] = None
    years_of_experience: Optional[int] = None
    is_active: bool = True
    order: int = 0


class WorkExperience(Document):
    company: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    start_date: datetime
    end_date: Optional[datetime] = None
    is_current_job: bool
    description: Optional[str] = None
    responsibilities: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    company_logo: Optional[str] = None
    company_url: Optional[str] = None
    is_active: bool = True
    order: int = 0


# Profile (singleton: one document, upserted against an empty filter)
class SocialLinks(Document):
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None


class PersonalInfo(Document):
    name: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    resume: Optional[str] = None
    resume_download_url: Optional[str] = None
    resume_file_name: Optional[str] = None
    resume_file_type: Optional[str] = None
    location: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    social_links: Optional[SocialLinks] = None


class Hero(Document):
    headline: Optional[str] = None
    subheadline: Optional[str] = None
    background_image: Optional[str] = None
    cta_text: Optional[str] = None
    cta_link: Optional[str] = None


class About(Document):
    description: Optional[str] = None
    images: Optional[List[str]] = None
    highlights: Optional[List[str]] = None


class Profile(Document):
    user_id: Optional[str] = None
    personal_info: Optional[PersonalInfo] = None
    hero: Optional[Hero] = None
    about: Optional[About] = None
    is_active: bool = True


# Site settings (singleton)
class SettingsSocialLinks(Document):
    github: Optional[str] = None
    linkedin: Optional[str] = None
    twitter: Optional[str] = None
    instagram: Optional[str] = None


class Settings(Document):
    site_name: str = Field(..., min_length=1)
    site_description: Optional[str] = None
    site_url: Optional[str] = None
    seo_keywords: List[str] = Field(default_factory=list)
    google_analytics: Optional[str] = None
    social_links: Optional[SettingsSocialLinks] = None
    contact_email: Optional[EmailStr] = None
    maintenance_mode: bool = False
    theme: Literal["light", "dark", "system"] = "system"


# Contact form
class Message(Document):
    name: str = Field(..., min_length=1)
    email: EmailStr
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    is_read: bool = False
    is_replied: bool = False
    reply: Optional[str] = None
    replied_at: Optional[datetime] = None


# Auth
class UserProfile(Document):
    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None


class User(Document):
    email: EmailStr
    password: str = Field(..., min_length=1, description="pbkdf2_sha256 hash, never returned")
    role: Literal["admin", "user"] = "user"
    profile: Optional[UserProfile] = None


# Request bodies that are not collections
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class ReorderItem(BaseModel):
    id: str
    order: int


class ReorderRequest(BaseModel):
    order: List[ReorderItem]


class ReplyRequest(BaseModel):
    reply: str = Field(..., min_length=1)
