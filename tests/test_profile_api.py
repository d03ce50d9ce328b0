AVATAR = ("me.png", b"\x89PNG\r\n\x1a\navatar", "image/png")
RESUME = ("Ada Resume.pdf", b"%PDF-1.4 resume", "application/pdf")


def test_public_profile_missing_is_404(client):
    res = client.get("/api/profile")

    assert res.status_code == 404
    assert res.json() == {"message": "Profile not found"}


def test_admin_profile_missing_is_empty(client, admin_headers):
    assert client.get("/api/admin/profile", headers=admin_headers).json() == {}


def test_first_update_creates_singleton_with_defaults(client, admin_headers, db):
    res = client.put("/api/admin/profile", json={"personalInfo": {"name": "Ada", "title": "Engineer"}},
                     headers=admin_headers)

    assert res.status_code == 200, res.text
    profile = res.json()
    assert profile["personalInfo"] == {"name": "Ada", "title": "Engineer"}
    assert profile["isActive"] is True
    assert db["profile"].count_documents({}) == 1
    assert client.get("/api/profile").json()["personalInfo"]["name"] == "Ada"


def test_repeated_updates_keep_one_document(client, admin_headers, db):
    client.put("/api/admin/profile", json={"hero": {"headline": "Hi"}}, headers=admin_headers)
    client.put("/api/admin/profile", json={"hero": {"headline": "Hello"}}, headers=admin_headers)

    assert db["profile"].count_documents({}) == 1
    assert db["profile"].find_one()["hero"] == {"headline": "Hello"}


def test_nested_update_merges_key_by_key(client, admin_headers):
    client.put("/api/admin/profile", data={
        "personalInfo[name]": "Ada",
        "personalInfo[socialLinks][github]": "https://github.com/ada",
        "personalInfo[socialLinks][linkedin]": "https://linkedin.com/in/ada",
    }, headers=admin_headers)

    res = client.put("/api/admin/profile", data={
        "personalInfo[socialLinks][github]": "https://github.com/ada-l",
    }, headers=admin_headers)

    info = res.json()["personalInfo"]
    assert info["name"] == "Ada"
    assert info["socialLinks"] == {
        "github": "https://github.com/ada-l",
        "linkedin": "https://linkedin.com/in/ada",
    }


def test_explicit_null_clears_nested_field(client, admin_headers):
    client.put("/api/admin/profile", json={"personalInfo": {"name": "Ada", "phone": "555"}}, headers=admin_headers)

    res = client.put("/api/admin/profile", json={"personalInfo": {"phone": None}}, headers=admin_headers)

    assert res.json()["personalInfo"] == {"name": "Ada"}


def test_inactive_profile_is_hidden_publicly(client, admin_headers):
    client.put("/api/admin/profile", data={"isActive": "false", "personalInfo[name]": "Ada"}, headers=admin_headers)

    assert client.get("/api/profile").status_code == 404


def test_avatar_upload_lands_in_personal_info(client, admin_headers, media_host):
    client.put("/api/admin/profile", json={"personalInfo": {"name": "Ada"}}, headers=admin_headers)

    res = client.put("/api/admin/profile", data={"hero[headline]": "Hi"}, files={"avatar": AVATAR},
                     headers=admin_headers)

    profile = res.json()
    assert profile["personalInfo"]["name"] == "Ada"
    assert profile["personalInfo"]["avatar"].startswith("https://res.cloudinary.com/demo/image/upload/")
    assert profile["hero"] == {"headline": "Hi"}
    assert media_host.calls[0]["folder"] == "portfolio/profile/avatars"


def test_resume_upload(client, admin_headers, media_host):
    client.put("/api/admin/profile", json={"personalInfo": {"name": "Ada"}}, headers=admin_headers)

    res = client.post("/api/admin/profile/resume", files={"resume": RESUME}, headers=admin_headers)

    assert res.status_code == 200, res.text
    body = res.json()
    call = media_host.calls[0]
    assert call["resource_type"] == "raw"
    assert call["format"] == "pdf"
    assert call["public_id"].startswith("resume_") and call["public_id"].endswith(".pdf")
    assert "/upload/fl_attachment,fl_force_download/" in body["downloadUrl"]
    info = body["profile"]["personalInfo"]
    assert info["name"] == "Ada"
    assert info["resume"] == body["resumeUrl"]
    assert info["resumeFileName"] == "Ada Resume.pdf"
    assert info["resumeFileType"] == "application/pdf"


def test_resume_must_be_a_document(client, admin_headers, media_host):
    res = client.post("/api/admin/profile/resume", files={"resume": AVATAR}, headers=admin_headers)

    assert res.status_code == 400
    assert media_host.calls == []


def test_resume_download_redirects(client, admin_headers):
    client.post("/api/admin/profile/resume", files={"resume": RESUME}, headers=admin_headers)

    res = client.get("/api/profile/resume/download", follow_redirects=False)

    assert res.status_code == 307
    assert res.headers["location"].startswith("https://res.cloudinary.com/demo/raw/upload/")
    assert res.headers["content-disposition"] == 'attachment; filename="Ada Resume.pdf"'


def test_resume_download_without_resume_is_404(client):
    res = client.get("/api/profile/resume/download", follow_redirects=False)

    assert res.status_code == 404
    assert res.json() == {"message": "Resume not found"}


def test_settings_created_then_updated(client, admin_headers, db):
    missing = client.put("/api/admin/settings", json={"theme": "dark"}, headers=admin_headers)
    assert missing.status_code == 400
    assert missing.json()["field"] == "siteName"

    created = client.put("/api/admin/settings", json={"siteName": "Ada", "seoKeywords": "python, fastapi"},
                         headers=admin_headers).json()
    assert created["seoKeywords"] == ["python", "fastapi"]
    assert created["theme"] == "system"

    updated = client.put("/api/admin/settings", data={"maintenanceMode": "true"}, headers=admin_headers).json()
    assert updated["maintenanceMode"] is True
    assert updated["siteName"] == "Ada"
    assert db["settings"].count_documents({}) == 1
