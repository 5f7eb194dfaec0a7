"""
Tests for storage backends and the persistence router
"""

import asyncio
import json

import httpx
import pytest

from conftest import FakeCloudStore
from nanodirector_core_schemas import ProjectState, Script, Shot, Session
from nanodirector_services import (
    Destination,
    PersistenceError,
    PersistenceErrorKind,
    PersistenceRouter,
)
from nanodirector_storage import (
    DriveStore,
    LocalStore,
    cloud_filename,
    export_manifest,
    import_manifest,
    manifest_filename,
)


def sample_state(**kwargs) -> ProjectState:
    return ProjectState(
        story_idea="A detective in the rain",
        script=Script(
            title="Rain",
            shots=[Shot(number=i + 1, description=f"Shot {i + 1}") for i in range(4)],
        ),
        **kwargs,
    )


class TestLocalStore:
    """Tests for LocalStore."""

    def test_manifest_named_after_project(self, temp_dir):
        store = LocalStore(temp_dir)

        path = store.save_manifest(sample_state(project_name="Night Shift"))

        assert path.name == "night-shift.json"
        assert manifest_filename(ProjectState()) == "project.json"

    def test_resave_overwrites(self, temp_dir):
        store = LocalStore(temp_dir)
        state = sample_state(project_name="Noir")

        store.save_manifest(state)
        state.story_idea = "Changed"
        store.save_manifest(state)

        manifests = list(temp_dir.glob("*.json"))
        assert len(manifests) == 1
        assert json.loads(manifests[0].read_text())["story_idea"] == "Changed"

    def test_load_reads_first_manifest(self, temp_dir):
        store = LocalStore(temp_dir)
        store.save_manifest(sample_state(project_name="b-project"))
        store.save_manifest(sample_state(project_name="a-project"))

        loaded = store.load_manifest()

        assert loaded.project_name == "a-project"

    def test_empty_folder_loads_nothing(self, temp_dir):
        assert LocalStore(temp_dir).load_manifest() is None

    def test_operations_need_a_folder(self):
        with pytest.raises(PersistenceError) as exc_info:
            LocalStore().save_manifest(ProjectState())

        assert exc_info.value.kind == PersistenceErrorKind.NO_DESTINATION

    def test_corrupt_manifest(self, temp_dir):
        (temp_dir / "project.json").write_text("{not json")

        with pytest.raises(PersistenceError):
            LocalStore(temp_dir).load_manifest()

    def test_read_image_cannot_escape_folder(self, temp_dir):
        store = LocalStore(temp_dir / "project")

        with pytest.raises(PersistenceError) as exc_info:
            store.read_image("../outside.png")

        assert exc_info.value.kind == PersistenceErrorKind.ACCESS_DENIED


class TestExportImport:
    """Tests for export_manifest and import_manifest."""

    def test_export_then_import(self, temp_dir):
        state = sample_state(project_name="Noir")

        path = export_manifest(state, temp_dir)

        assert path == temp_dir / "noir.json"
        assert import_manifest(path) == state

    def test_import_missing_file(self, temp_dir):
        with pytest.raises(PersistenceError) as exc_info:
            import_manifest(temp_dir / "missing.json")

        assert exc_info.value.kind == PersistenceErrorKind.NOT_FOUND


class TestCloudFilename:
    """Tests for cloud_filename."""

    def test_named_project(self):
        assert cloud_filename(ProjectState(project_name=" Noir ")) == "Noir.json"

    def test_unnamed_project_is_timestamped(self):
        name = cloud_filename(ProjectState())

        assert name.startswith("NanoProject - ")
        assert name.endswith(".json")


class TestRouterSave:
    """Tests for PersistenceRouter.save."""

    @pytest.mark.asyncio
    async def test_no_destination_without_folder(self):
        router = PersistenceRouter(LocalStore())

        assert router.destination is None
        with pytest.raises(PersistenceError) as exc_info:
            await router.save(sample_state())

        assert exc_info.value.kind == PersistenceErrorKind.NO_DESTINATION

    @pytest.mark.asyncio
    async def test_explicit_local_save_asks_for_folder(self, temp_dir):
        router = PersistenceRouter(LocalStore(), choose_folder=lambda: temp_dir)

        result = await router.save(sample_state(), Destination.LOCAL)

        assert result.saved
        assert router.destination == Destination.LOCAL
        assert (temp_dir / "project.json").exists()

    @pytest.mark.asyncio
    async def test_cancelled_folder_choice_writes_nothing(self):
        async def cancel():
            return None

        router = PersistenceRouter(LocalStore(), choose_folder=cancel)

        result = await router.save(sample_state(), Destination.LOCAL)

        assert not result.saved
        assert router.destination is None

    @pytest.mark.asyncio
    async def test_autosave_never_prompts(self):
        asked = []
        router = PersistenceRouter(LocalStore(), choose_folder=lambda: asked.append(1))

        result = await router.save(sample_state(), Destination.LOCAL, autosave=True)

        assert not result.saved
        assert asked == []

    @pytest.mark.asyncio
    async def test_cloud_save_creates_new_file_each_time(self, cloud_store):
        router = PersistenceRouter(LocalStore(), cloud_store)
        state = sample_state(project_name="Noir")

        first = await router.save(state, Destination.CLOUD)
        second = await router.save(state, Destination.CLOUD)

        assert first.location != second.location
        assert len(cloud_store.files) == 2
        assert {name for name, _ in cloud_store.files.values()} == {"Noir.json"}

    @pytest.mark.asyncio
    async def test_cloud_save_signed_out_requests_login(self):
        logins = []
        cloud = FakeCloudStore(authenticated=False)
        router = PersistenceRouter(LocalStore(), cloud, request_login=lambda: logins.append(1))

        result = await router.save(sample_state(), Destination.CLOUD)
        autosaved = await router.save(sample_state(), Destination.CLOUD, autosave=True)

        assert not result.saved and not autosaved.saved
        assert logins == [1]
        assert cloud.files == {}

    @pytest.mark.asyncio
    async def test_download_is_explicit_only(self, temp_dir):
        router = PersistenceRouter(LocalStore())
        target = temp_dir / "export.json"

        autosaved = await router.save(sample_state(), Destination.DOWNLOAD, autosave=True)
        exported = await router.save(sample_state(), Destination.DOWNLOAD, path=target)

        assert not autosaved.saved
        assert exported.saved
        assert target.exists()

    def test_download_is_not_an_autosave_destination(self):
        router = PersistenceRouter(LocalStore())

        with pytest.raises(PersistenceError):
            router.set_destination(Destination.DOWNLOAD)


class TestOperationLock:
    """Tests for mutual exclusion of explicit actions."""

    @pytest.mark.asyncio
    async def test_second_explicit_action_is_rejected(self, temp_dir):
        release = asyncio.Event()

        async def slow_choice():
            await release.wait()
            return temp_dir

        router = PersistenceRouter(LocalStore(), choose_folder=slow_choice)
        save = asyncio.ensure_future(router.save(sample_state(), Destination.LOCAL))
        await asyncio.sleep(0)

        assert router.lock.held
        with pytest.raises(PersistenceError) as exc_info:
            await router.import_file(temp_dir / "other.json")
        assert exc_info.value.kind == PersistenceErrorKind.BUSY

        release.set()
        result = await save

        assert result.saved
        assert not router.lock.held

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, temp_dir):
        router = PersistenceRouter(LocalStore())

        with pytest.raises(PersistenceError):
            await router.import_file(temp_dir / "missing.json")

        assert not router.lock.held

    @pytest.mark.asyncio
    async def test_explicit_action_waits_for_background_write(self, temp_dir):
        router = PersistenceRouter(LocalStore(temp_dir))
        order = []

        async def background_write():
            await asyncio.sleep(0.01)
            order.append("autosave")

        router.lock.track(asyncio.ensure_future(background_write()))
        await router.save(sample_state(), Destination.LOCAL)
        order.append("explicit")

        assert order == ["autosave", "explicit"]


class TestRouterLoad:
    """Tests for loads and destination switching."""

    @pytest.mark.asyncio
    async def test_open_local_sets_local_destination(self, temp_dir, cloud_store):
        LocalStore(temp_dir).save_manifest(sample_state(project_name="Noir"))
        router = PersistenceRouter(LocalStore(), cloud_store)
        router.set_destination(Destination.CLOUD)

        state = await router.open_local(temp_dir)

        assert state.project_name == "Noir"
        assert router.destination == Destination.LOCAL

    @pytest.mark.asyncio
    async def test_load_cloud_sets_cloud_destination(self, temp_dir, cloud_store):
        file_id = await cloud_store.save(sample_state(project_name="Remote"), "Remote.json")
        router = PersistenceRouter(LocalStore(temp_dir), cloud_store)

        state = await router.load_cloud(file_id)

        assert state.project_name == "Remote"
        assert router.destination == Destination.CLOUD

    @pytest.mark.asyncio
    async def test_import_keeps_destination(self, temp_dir, cloud_store):
        path = export_manifest(sample_state(project_name="Imported"), temp_dir / "in.json")
        router = PersistenceRouter(LocalStore(), cloud_store)
        router.set_destination(Destination.CLOUD)

        state = await router.import_file(path)

        assert state.project_name == "Imported"
        assert router.destination == Destination.CLOUD

    @pytest.mark.asyncio
    async def test_list_cloud_signed_out(self):
        router = PersistenceRouter(LocalStore(), FakeCloudStore(authenticated=False))

        with pytest.raises(PersistenceError) as exc_info:
            await router.list_cloud()

        assert exc_info.value.kind == PersistenceErrorKind.NOT_AUTHENTICATED


def drive_handler(upload=None, listing=None):
    """MockTransport handler answering the three Drive calls the store makes."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/upload/"):
            return upload
        if request.method == "POST":
            return httpx.Response(200, json={"id": "folder-new"})
        if "in parents" in request.url.params.get("q", ""):
            return listing
        return httpx.Response(200, json={"files": [{"id": "folder-1"}]})

    return handler


def drive_store(**responses) -> DriveStore:
    transport = httpx.MockTransport(drive_handler(**responses))
    return DriveStore(Session(access_token="token"), transport=transport)


class TestDriveStore:
    """Tests for DriveStore against a stubbed Drive API."""

    @pytest.mark.asyncio
    async def test_upload_returns_new_file_id(self):
        store = drive_store(upload=httpx.Response(200, json={"id": "file-9"}))

        assert await store.save(sample_state(), "Rain.json") == "file-9"

    @pytest.mark.asyncio
    async def test_listing(self):
        store = drive_store(
            listing=httpx.Response(200, json={"files": [{"id": "file-1", "name": "Rain.json"}]})
        )

        files = await store.list()

        assert [(f.id, f.name) for f in files] == [("file-1", "Rain.json")]

    @pytest.mark.asyncio
    async def test_non_json_upload_response(self):
        store = drive_store(upload=httpx.Response(200, text="<html>Service Unavailable</html>"))

        with pytest.raises(PersistenceError) as exc_info:
            await store.save(sample_state(), "Rain.json")

        assert exc_info.value.kind == PersistenceErrorKind.IO

    @pytest.mark.asyncio
    async def test_listing_entry_without_id(self):
        store = drive_store(listing=httpx.Response(200, json={"files": [{"name": "Rain.json"}]}))

        with pytest.raises(PersistenceError):
            await store.list()

    @pytest.mark.asyncio
    async def test_created_folder_without_id(self):
        store = DriveStore(
            Session(access_token="token"),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )

        with pytest.raises(PersistenceError):
            await store.save(sample_state(), "Rain.json")

    @pytest.mark.asyncio
    async def test_signed_out(self):
        store = DriveStore(Session())

        with pytest.raises(PersistenceError) as exc_info:
            await store.list()

        assert exc_info.value.kind == PersistenceErrorKind.NOT_AUTHENTICATED
