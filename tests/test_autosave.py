"""
Tests for the debounced autosave coordinator
"""

import asyncio

import httpx
import pytest

from conftest import FakeCloudStore
from nanodirector_core_schemas import ProjectState, Session
from nanodirector_services import (
    AutosaveCoordinator,
    Destination,
    PersistenceError,
    PersistenceRouter,
    Workspace,
)
from nanodirector_storage import DriveStore, LocalStore

QUIET = 0.02


class CountingCloudStore(FakeCloudStore):
    """Cloud store that can fail on demand."""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail

    async def save(self, state, name):
        if self.fail:
            raise PersistenceError("Drive request failed (500)")
        return await super().save(state, name)


def make_coordinator(router, state=None, **kwargs) -> AutosaveCoordinator:
    state = state or ProjectState(story_idea="heist")
    return AutosaveCoordinator(router, lambda: state, quiet_period=QUIET, **kwargs)


async def settle():
    await asyncio.sleep(QUIET * 3)


class TestAutosaveCoordinator:
    """Tests for AutosaveCoordinator."""

    @pytest.mark.asyncio
    async def test_burst_of_changes_saves_once(self):
        cloud = CountingCloudStore()
        router = PersistenceRouter(LocalStore(), cloud)
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        for _ in range(5):
            autosave.notify()
            await asyncio.sleep(QUIET / 4)
        await settle()
        await autosave.wait_idle()

        assert len(cloud.files) == 1

    @pytest.mark.asyncio
    async def test_disabled_writes_nothing(self):
        cloud = CountingCloudStore()
        router = PersistenceRouter(LocalStore(), cloud)
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router, enabled=False)

        autosave.notify()
        await settle()

        assert cloud.files == {}
        assert not autosave.is_armed

    @pytest.mark.asyncio
    async def test_disabling_cancels_pending_save(self):
        cloud = CountingCloudStore()
        router = PersistenceRouter(LocalStore(), cloud)
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        autosave.notify()
        assert autosave.is_armed
        autosave.enabled = False
        await settle()

        assert cloud.files == {}

    @pytest.mark.asyncio
    async def test_skipped_while_lock_held(self):
        cloud = CountingCloudStore()
        router = PersistenceRouter(LocalStore(), cloud)
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        async with router.lock.hold("cloud load"):
            autosave.notify()
            await settle()

        assert cloud.files == {}

    @pytest.mark.asyncio
    async def test_no_destination_asks_once_content_exists(self):
        asked = []
        router = PersistenceRouter(LocalStore())
        autosave = make_coordinator(router, ask_destination=lambda: asked.append(1))

        autosave.notify()
        await settle()

        assert asked == [1]

    @pytest.mark.asyncio
    async def test_empty_project_does_not_ask(self):
        asked = []
        router = PersistenceRouter(LocalStore())
        autosave = make_coordinator(
            router, state=ProjectState(), ask_destination=lambda: asked.append(1)
        )

        autosave.notify()
        await settle()

        assert asked == []

    @pytest.mark.asyncio
    async def test_write_failure_is_not_raised(self, caplog):
        router = PersistenceRouter(LocalStore(), CountingCloudStore(fail=True))
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        autosave.notify()
        await settle()
        await autosave.wait_idle()

        assert "Autosave failed" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_drive_response_is_logged(self, caplog):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        store = DriveStore(Session(access_token="token"), transport=transport)
        router = PersistenceRouter(LocalStore(), store)
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        autosave.notify()
        await settle()
        await autosave.wait_idle()

        assert "Autosave failed: Drive returned a malformed response" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_write_error_is_logged(self, caplog):
        class BrokenCloudStore(FakeCloudStore):
            async def save(self, state, name):
                raise RuntimeError("socket closed")

        router = PersistenceRouter(LocalStore(), BrokenCloudStore())
        router.set_destination(Destination.CLOUD)
        autosave = make_coordinator(router)

        autosave.notify()
        await settle()
        await autosave.wait_idle()

        assert "Autosave failed unexpectedly" in caplog.text
        assert "socket closed" in caplog.text

    @pytest.mark.asyncio
    async def test_local_autosave_overwrites_manifest(self, temp_dir):
        router = PersistenceRouter(LocalStore(temp_dir))
        state = ProjectState(project_name="Noir", story_idea="one")
        autosave = make_coordinator(router, state=state)

        autosave.notify()
        await settle()
        await autosave.wait_idle()
        state.story_idea = "two"
        autosave.notify()
        await settle()
        await autosave.wait_idle()

        manifests = list(temp_dir.glob("*.json"))
        assert [p.name for p in manifests] == ["noir.json"]
        assert '"two"' in manifests[0].read_text()


class TestWorkspaceAutosave:
    """Director changes reach the coordinator through the workspace."""

    @pytest.mark.asyncio
    async def test_director_change_is_autosaved(self, generator, temp_dir):
        workspace = Workspace(
            session=None,
            generator=generator,
            local_store=LocalStore(temp_dir),
            remaster_delay=0,
            autosave_quiet_period=QUIET,
        )

        workspace.director.set_project_name("Noir")
        workspace.director.set_story_idea("A detective in the rain")
        await settle()
        await workspace.autosave.wait_idle()

        assert (temp_dir / "noir.json").exists()
        workspace.close()

    @pytest.mark.asyncio
    async def test_explicit_save_and_reload(self, generator, temp_dir):
        workspace = Workspace(
            session=None,
            generator=generator,
            local_store=LocalStore(),
            cloud_store=FakeCloudStore(),
            autosave_enabled=False,
            remaster_delay=0,
        )
        workspace.director.set_story_idea("heist")
        await workspace.director.generate()

        result = await workspace.save(Destination.LOCAL, path=temp_dir)
        workspace.director.reset()
        loaded = await workspace.open_local(temp_dir)

        assert result.saved
        assert loaded.story_idea == "heist"
        assert len(workspace.director.state.grid_candidates) == 2
