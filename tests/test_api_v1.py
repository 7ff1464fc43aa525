from __future__ import annotations

import re

import pytest
from starlette.datastructures import UploadFile as StarletteUploadFile

from conftest import FakeObjectStore, build_token

MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x02" * 128


def _create_video(client, headers, title="Boots") -> dict:
    resp = client.post("/v1/videos", json={"title": title, "description": "trail run"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_v1_health_ok(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_requests_without_token_are_unauthorized(client):
    resp = client.get("/v1/videos")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_requests_with_bad_signature_are_unauthorized(client):
    headers = {"Authorization": f"Bearer {build_token('user-1', secret='wrong')}"}
    resp = client.get("/v1/videos", headers=headers)
    assert resp.status_code == 401


def test_create_and_list_videos(client, auth_headers, other_headers):
    created = _create_video(client, auth_headers)
    assert created["user_id"] == "user-1"
    assert created["video_url"] is None

    listed = client.get("/v1/videos", headers=auth_headers).json()
    assert [video["id"] for video in listed] == [created["id"]]
    assert client.get("/v1/videos", headers=other_headers).json() == []

    fetched = client.get(f"/v1/videos/{created['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Boots"


def test_unknown_video_is_not_found(client, auth_headers):
    resp = client.get("/v1/videos/does-not-exist", headers=auth_headers)
    assert resp.status_code == 404


def test_upload_video_persists_durable_reference(client, auth_headers, media_tools, tmp_path):
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=auth_headers,
    )

    assert resp.status_code == 200, resp.text
    video_url = resp.json()["video_url"]
    assert re.match(r"^https://cdn\.example\.test/landscape/[A-Za-z0-9_-]{40,}\.mp4$", video_url)
    key = video_url.removeprefix("https://cdn.example.test/")
    assert (tmp_path / "store" / key).read_bytes() == MP4
    assert list((tmp_path / "assets").iterdir()) == []

    again = client.get(f"/v1/videos/{video['id']}", headers=auth_headers).json()
    assert again["video_url"] == video_url


def test_upload_video_rejects_quicktime(client, auth_headers, media_tools, tmp_path):
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mov", MP4, "video/quicktime")},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_failed"
    assert media_tools.calls == []
    assert client.get(f"/v1/videos/{video['id']}", headers=auth_headers).json()["video_url"] is None


def test_upload_video_requires_file_part(client, auth_headers):
    video = _create_video(client, auth_headers)
    resp = client.post(f"/v1/videos/{video['id']}/video", data={"note": "no file"}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Video file missing"


@pytest.mark.parametrize("video_id", ["owned-by-someone-else", "missing"])
def test_upload_video_forbidden_for_non_owner(client, auth_headers, other_headers, media_tools, video_id):
    if video_id == "owned-by-someone-else":
        video_id = _create_video(client, auth_headers)["id"]

    resp = client.post(
        f"/v1/videos/{video_id}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=other_headers,
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"
    assert media_tools.calls == []


def test_probe_failure_surfaces_as_client_error(client, auth_headers, media_tools, tmp_path):
    media_tools.probe_returncode = 1
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "probe_failed"
    assert list((tmp_path / "assets").iterdir()) == []
    assert client.get(f"/v1/videos/{video['id']}", headers=auth_headers).json()["video_url"] is None


def test_oversized_upload_is_rejected_before_reading(client, auth_headers, media_tools, monkeypatch):
    reads = []

    async def tracking_read(self, size=-1):
        reads.append(size)
        return b""

    monkeypatch.setattr(StarletteUploadFile, "read", tracking_read)
    client.app.state.video_pipeline.max_upload_bytes = len(MP4) - 1
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_failed"
    assert reads == []
    assert media_tools.calls == []


def test_upload_at_cap_is_accepted(client, auth_headers, media_tools):
    client.app.state.video_pipeline.max_upload_bytes = len(MP4)
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=auth_headers,
    )

    assert resp.status_code == 200, resp.text


def test_storage_failure_leaves_record_unmodified(client, auth_headers, media_tools, tmp_path):
    client.app.state.video_pipeline.object_store = FakeObjectStore(fail=True)
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mp4", MP4, "video/mp4")},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "storage_failed"
    assert list((tmp_path / "assets").iterdir()) == []
    assert client.get(f"/v1/videos/{video['id']}", headers=auth_headers).json()["video_url"] is None


def test_invalid_media_type_wins_over_ownership(client, auth_headers, other_headers, media_tools):
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/video",
        files={"video": ("clip.mov", MP4, "video/quicktime")},
        headers=other_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_failed"


def test_upload_thumbnail_inline(client, auth_headers):
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/thumbnail",
        files={"thumbnail": ("thumb.png", b"\x89PNG....", "image/png")},
        headers=auth_headers,
    )

    assert resp.status_code == 200, resp.text
    assert resp.json()["thumbnail_url"].startswith("data:image/png;base64,")


def test_upload_thumbnail_rejects_gif(client, auth_headers):
    video = _create_video(client, auth_headers)

    resp = client.post(
        f"/v1/videos/{video['id']}/thumbnail",
        files={"thumbnail": ("thumb.gif", b"GIF89a", "image/gif")},
        headers=auth_headers,
    )

    assert resp.status_code == 400


def test_openapi_lists_upload_routes(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert "/v1/videos/{video_id}/video" in paths
    assert "/v1/videos/{video_id}/thumbnail" in paths
