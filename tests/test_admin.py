import pytest

from portfolio.services import uploads

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _form(**overrides):
    data = {"title": "Foo", "slug": "foo", "kind": "project", "summary": "A summary"}
    data.update(overrides)
    return data


async def _upload(client, entry_id, content=PNG, filename="hero.png", content_type="image/png"):
    return await client.post(
        f"/admin/upload-hero/{entry_id}",
        files={"hero": (filename, content, content_type)},
    )


@pytest.mark.asyncio
async def test_dashboard_lists_entries(admin_client, make_entry):
    await make_entry(slug="visible", title="Visible project", published=True)
    await make_entry(slug="draft", title="Draft project")

    response = await admin_client.get("/admin")

    assert response.status_code == 200
    assert "Visible project" in response.text
    assert "Draft project" in response.text
    assert "2 entries" in response.text


@pytest.mark.asyncio
async def test_dashboard_kind_filter_accepts_aliases(admin_client, make_entry):
    await make_entry(slug="p", title="Project entry")
    await make_entry(slug="l", title="Lab entry", kind="lab")

    response = await admin_client.get("/admin?kind=Labs")

    assert "Lab entry" in response.text
    assert "Project entry" not in response.text


@pytest.mark.asyncio
async def test_dashboard_search(admin_client, make_entry):
    await make_entry(slug="drawer", title="Drawer pattern")
    await make_entry(slug="tokens", title="Design tokens")

    response = await admin_client.get("/admin?q=drawer")

    assert "Drawer pattern" in response.text
    assert "Design tokens" not in response.text


@pytest.mark.asyncio
async def test_create_entry(admin_client, fetch_entry):
    response = await admin_client.post("/admin/new", data=_form(published="1", date="2024-06-01"))

    assert response.status_code == 303
    assert response.headers["location"] == "/admin"
    entry = await fetch_entry("foo")
    assert entry.title == "Foo"
    assert entry.published is True
    assert entry.date == "2024-06-01"


@pytest.mark.asyncio
async def test_create_duplicate_slug_keeps_input(admin_client, make_entry, fetch_entry):
    await make_entry(slug="foo", title="Original")

    response = await admin_client.post("/admin/new", data=_form(title="Second attempt"))

    assert response.status_code == 400
    assert "already exists" in response.text
    assert 'value="Second attempt"' in response.text
    assert (await fetch_entry("foo")).title == "Original"


@pytest.mark.asyncio
async def test_create_invalid_form(admin_client, fetch_entry):
    response = await admin_client.post("/admin/new", data=_form(title="", slug="Bad Slug"))

    assert response.status_code == 400
    assert 'value="Bad Slug"' in response.text
    assert await fetch_entry("bad slug") is None


@pytest.mark.asyncio
async def test_edit_entry(admin_client, make_entry, fetch_entry):
    entry = await make_entry(slug="foo", title="Foo")

    page = await admin_client.get(f"/admin/edit/{entry.id}")
    assert page.status_code == 200
    assert 'value="foo"' in page.text

    response = await admin_client.post(
        f"/admin/edit/{entry.id}",
        data=_form(title="Foo v2", kind="other", category="ux"),
    )

    assert response.status_code == 303
    stored = await fetch_entry("foo")
    assert stored.title == "Foo v2"
    assert (stored.kind, stored.category) == ("other", "ux")


@pytest.mark.asyncio
async def test_edit_to_taken_slug_rejected(admin_client, make_entry, fetch_entry):
    await make_entry(slug="taken")
    entry = await make_entry(slug="foo", title="Foo")

    response = await admin_client.post(f"/admin/edit/{entry.id}", data=_form(slug="taken"))

    assert response.status_code == 400
    assert (await fetch_entry("foo")).title == "Foo"


@pytest.mark.asyncio
async def test_toggle_publish_follows_redirect(admin_client, make_entry, fetch_entry):
    entry = await make_entry(slug="foo")

    response = await admin_client.post(f"/admin/toggle-publish/{entry.id}", data={"redirect": "/admin?kind=project"})

    assert response.status_code == 303
    assert response.headers["location"] == "/admin?kind=project"
    assert (await fetch_entry("foo")).published is True


@pytest.mark.asyncio
async def test_toggle_publish_rejects_offsite_redirect(admin_client, make_entry):
    entry = await make_entry(slug="foo")

    response = await admin_client.post(f"/admin/toggle-publish/{entry.id}", data={"redirect": "https://evil.example"})

    assert response.headers["location"] == "/admin"


@pytest.mark.asyncio
async def test_unknown_entry_is_404(admin_client):
    assert (await admin_client.get("/admin/edit/999")).status_code == 404
    assert (await admin_client.post("/admin/toggle-publish/999")).status_code == 404
    assert (await admin_client.post("/admin/delete/999")).status_code == 404


@pytest.mark.asyncio
async def test_upload_replaces_previous_file(admin_client, make_entry, fetch_entry, upload_dir):
    entry = await make_entry(slug="foo")

    response = await _upload(admin_client, entry.id)
    assert response.status_code == 303
    assert response.headers["location"] == f"/admin/edit/{entry.id}"
    first = (await fetch_entry("foo")).hero_image
    assert first.startswith("/uploads/") and first.endswith(".png")
    assert (upload_dir / first.rsplit("/", 1)[1]).exists()

    await _upload(admin_client, entry.id, content=b"GIF89a" + b"\x00" * 16, filename="x.gif", content_type="image/gif")

    second = (await fetch_entry("foo")).hero_image
    assert second.endswith(".gif")
    assert not (upload_dir / first.rsplit("/", 1)[1]).exists()
    assert (upload_dir / second.rsplit("/", 1)[1]).exists()


@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(admin_client, make_entry, fetch_entry, upload_dir):
    entry = await make_entry(slug="foo")

    response = await _upload(admin_client, entry.id, content=b"hello", filename="notes.txt", content_type="text/plain")

    assert response.status_code == 400
    assert "Unsupported image type" in response.text
    assert (await fetch_entry("foo")).hero_image == ""


@pytest.mark.asyncio
async def test_upload_rejects_oversize(admin_client, make_entry, fetch_entry, upload_dir, monkeypatch):
    monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 16)
    entry = await make_entry(slug="foo")

    response = await _upload(admin_client, entry.id)

    assert response.status_code == 400
    assert "larger than" in response.text
    assert (await fetch_entry("foo")).hero_image == ""
    assert not upload_dir.exists() or list(upload_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_upload_without_file(admin_client, make_entry):
    entry = await make_entry(slug="foo")

    response = await admin_client.post(f"/admin/upload-hero/{entry.id}", data={"other": "1"})

    assert response.status_code == 400
    assert "No file" in response.text


@pytest.mark.asyncio
async def test_remove_hero(admin_client, make_entry, fetch_entry, upload_dir):
    entry = await make_entry(slug="foo")
    await _upload(admin_client, entry.id)
    url = (await fetch_entry("foo")).hero_image

    response = await admin_client.post(f"/admin/remove-hero/{entry.id}")

    assert response.status_code == 303
    assert (await fetch_entry("foo")).hero_image == ""
    assert not (upload_dir / url.rsplit("/", 1)[1]).exists()


@pytest.mark.asyncio
async def test_remove_external_hero_leaves_disk_alone(admin_client, make_entry, fetch_entry, upload_dir):
    upload_dir.mkdir(parents=True, exist_ok=True)
    keep = upload_dir / "keep.png"
    keep.write_bytes(PNG)
    entry = await make_entry(slug="foo", hero_image="https://cdn.example/keep.png")

    await admin_client.post(f"/admin/remove-hero/{entry.id}")

    assert (await fetch_entry("foo")).hero_image == ""
    assert keep.exists()


@pytest.mark.asyncio
async def test_delete_removes_entry_and_hero(admin_client, make_entry, fetch_entry, upload_dir):
    entry = await make_entry(slug="foo")
    await _upload(admin_client, entry.id)
    url = (await fetch_entry("foo")).hero_image

    response = await admin_client.post(f"/admin/delete/{entry.id}")

    assert response.status_code == 303
    assert await fetch_entry("foo") is None
    assert not (upload_dir / url.rsplit("/", 1)[1]).exists()


@pytest.mark.asyncio
async def test_markdown_preview(admin_client):
    response = await admin_client.post(
        "/admin/markdown/preview",
        json={"markdown": "# Hello\n\n<script>alert(1)</script>"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert "<h1>Hello</h1>" in body["html"]
    assert "<script" not in body["html"]


@pytest.mark.asyncio
async def test_markdown_preview_requires_admin(client):
    response = await client.post("/admin/markdown/preview", json={"markdown": "x"})

    assert response.status_code == 303


@pytest.mark.asyncio
async def test_reports_page(admin_client):
    response = await admin_client.get("/admin/reports")

    assert response.status_code == 200
    assert "Top items" in response.text
