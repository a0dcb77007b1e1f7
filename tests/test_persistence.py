"""Tests for object storage, the artifact repository and the result sink."""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from conftest import Recorder, mock_client
from framecast.database import Base
from framecast.services.artifact_repository import ArtifactRepository
from framecast.services.result_sink import ArtifactMetadata, ResultSink, guess_extension, storage_key
from framecast.services.storage import LocalObjectStorage
from framecast.services.types import PersistedArtifact


@pytest_asyncio.fixture
async def repository():
    import framecast.models  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield ArtifactRepository(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()


@pytest.fixture
def storage(settings):
    return LocalObjectStorage(settings.MEDIA_VOLUME, settings.MEDIA_BASE_URL)


class BrokenRepository:
    async def insert(self, artifact):
        raise RuntimeError("database is down")


def take(unit_id="unit-1", url="https://cdn/a.mp4", is_default=False):
    return PersistedArtifact(
        unit_id=unit_id, artifact_url=url, provider_id="runway", prompt="p", is_default=is_default,
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_local_storage_put_and_recognise(storage):
    url = await storage.put(b"data", "unit-1/videos/x.mp4", "video/mp4")
    assert url == "http://testserver/media/unit-1/videos/x.mp4"
    assert storage.is_stored(url)
    assert not storage.is_stored("https://cdn/a.mp4")
    with open(storage.path_for("unit-1/videos/x.mp4"), "rb") as f:
        assert f.read() == b"data"


def test_storage_keys_cannot_escape_root(storage):
    with pytest.raises(ValueError):
        storage.path_for("../outside.mp4")


def test_extension_guessing():
    assert guess_extension("https://cdn/x", "video/mp4; charset=binary", "video") == "mp4"
    assert guess_extension("https://cdn/clip.webm?sig=1", None, "video") == "webm"
    assert guess_extension("https://cdn/blob", None, "image") == "png"
    key = storage_key("unit-1", "https://cdn/a.mp4", "video")
    assert key.startswith("unit-1/videos/") and key.endswith(".mp4")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_and_list_newest_first(repository):
    first = await repository.insert(take(url="https://cdn/1.mp4"))
    second = await repository.insert(take(url="https://cdn/2.mp4"))
    await repository.insert(take(unit_id="unit-2"))

    assert first.id and second.id and first.id != second.id
    listed = await repository.list_for_unit("unit-1")
    assert {a.id for a in listed} == {first.id, second.id}
    assert listed[0].created_at >= listed[1].created_at
    assert listed[0].created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_exactly_one_default_per_unit(repository):
    a = await repository.insert(take(is_default=True))
    b = await repository.insert(take())

    await repository.set_default(b.id)
    await repository.set_default(a.id)

    defaults = [x for x in await repository.list_for_unit("unit-1") if x.is_default]
    assert [x.id for x in defaults] == [a.id]


@pytest.mark.asyncio
async def test_default_insert_clears_previous_default(repository):
    await repository.insert(take(is_default=True))
    newest = await repository.insert(take(is_default=True))

    defaults = [x for x in await repository.list_for_unit("unit-1") if x.is_default]
    assert [x.id for x in defaults] == [newest.id]


@pytest.mark.asyncio
async def test_set_default_unknown_artifact(repository):
    with pytest.raises(LookupError):
        await repository.set_default("missing")
    assert await repository.get("missing") is None


# ---------------------------------------------------------------------------
# Result sink
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_persist_copies_into_storage(repository, storage):
    recorder = Recorder(httpx.Response(200, content=b"mp4-bytes", headers={"content-type": "video/mp4"}))
    async with mock_client(recorder) as client:
        sink = ResultSink(storage, repository, client)
        artifact = await sink.persist("unit-1", "https://cdn/out", ArtifactMetadata(provider_id="runway"))

    assert artifact.id is not None
    assert storage.is_stored(artifact.artifact_url)
    assert artifact.artifact_url.endswith(".mp4")
    assert artifact.source_url == "https://cdn/out"
    assert artifact.storage_warning is None


@pytest.mark.asyncio
async def test_regenerations_are_separate_takes(repository, storage):
    def ok(request):
        return httpx.Response(200, content=b"v", headers={"content-type": "video/mp4"})

    async with mock_client(ok) as client:
        sink = ResultSink(storage, repository, client)
        one = await sink.persist("unit-1", "https://cdn/same.mp4", ArtifactMetadata(provider_id="runway"))
        two = await sink.persist("unit-1", "https://cdn/same.mp4", ArtifactMetadata(provider_id="runway"))

    assert one.id != two.id
    assert len(await sink.list_for_unit("unit-1")) == 2


@pytest.mark.asyncio
async def test_download_failure_keeps_provider_url(repository, storage):
    recorder = Recorder(httpx.Response(404))
    async with mock_client(recorder) as client:
        sink = ResultSink(storage, repository, client)
        artifact = await sink.persist("unit-1", "https://cdn/gone.mp4", ArtifactMetadata(provider_id="kling"))

    assert artifact.artifact_url == "https://cdn/gone.mp4"
    assert artifact.storage_warning
    assert artifact.id is not None


@pytest.mark.asyncio
async def test_malformed_provider_url_keeps_it_with_a_warning(repository, storage):
    recorder = Recorder()
    async with mock_client(recorder) as client:
        sink = ResultSink(storage, repository, client)
        artifact = await sink.persist("unit-1", "http://[::1/out.mp4", ArtifactMetadata(provider_id="runway"))

    assert recorder.requests == []
    assert artifact.artifact_url == "http://[::1/out.mp4"
    assert artifact.storage_warning
    assert artifact.id is not None


@pytest.mark.asyncio
async def test_already_stored_urls_are_not_downloaded(repository, storage):
    url = await storage.put(b"audio", "unit-1/audios/a.mp3")
    recorder = Recorder()
    async with mock_client(recorder) as client:
        sink = ResultSink(storage, repository, client)
        artifact = await sink.persist("unit-1", url, ArtifactMetadata(provider_id="elevenlabs", media_kind="audio"))

    assert recorder.requests == []
    assert artifact.artifact_url == url
    assert artifact.media_kind == "audio"


@pytest.mark.asyncio
async def test_insert_failure_still_returns_artifact(storage):
    recorder = Recorder(httpx.Response(200, content=b"png", headers={"content-type": "image/png"}))
    async with mock_client(recorder) as client:
        sink = ResultSink(storage, BrokenRepository(), client)
        artifact = await sink.persist(
            "unit-1", "https://oai/img", ArtifactMetadata(provider_id="openai", media_kind="image"),
        )

    assert artifact.id is None
    assert storage.is_stored(artifact.artifact_url)
    assert artifact.artifact_url.endswith(".png")
