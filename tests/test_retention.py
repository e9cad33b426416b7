"""Tests for apprelay/services/retention.py."""

from apprelay.schemas import AppSettings, Channel, DeletePolicy, Platform
from apprelay.services.retention import RetentionEngine
from tests.conftest import RecordingFileStore, build_data, uploaded_at

API = "http://localhost:3000"


async def seed(backend, count, start=0, **overrides):
    """Create *count* builds in the Demo iOS/Beta group, oldest first."""
    builds = []
    for i in range(start, start + count):
        builds.append(
            await backend.builds.create(
                build_data(
                    version_name=f"1.0.{i}",
                    upload_date=uploaded_at(i),
                    file_name=f"file-{i}.ipa",
                    **overrides,
                ),
                API,
            )
        )
    return builds


async def remaining_ids(backend):
    group = await backend.builds.list_group("Demo", Platform.IOS, Channel.BETA)
    return {b.id for b in group}


# ---------------------------------------------------------------------------
# Cap enforcement
# ---------------------------------------------------------------------------


class TestCap:
    async def test_keeps_most_recent(self, backend, file_store):
        builds = await seed(backend, 5)
        settings = AppSettings(max_builds_per_group=3, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert set(pruned) == {builds[0].id, builds[1].id}
        assert await remaining_ids(backend) == {b.id for b in builds[2:]}
        assert sorted(file_store.deleted) == ["file-0.ipa", "file-1.ipa"]

    async def test_under_cap_is_noop(self, backend, file_store):
        builds = await seed(backend, 2)
        settings = AppSettings(max_builds_per_group=2, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert pruned == []
        assert await remaining_ids(backend) == {b.id for b in builds}
        assert file_store.deleted == []

    async def test_other_groups_untouched(self, backend, file_store):
        await seed(backend, 3)
        other = await backend.builds.create(
            build_data(channel="Production", upload_date=uploaded_at(-10)), API
        )
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.ALL)

        await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert await backend.builds.get_by_id(other.id) is not None

    async def test_auto_clean_disabled(self, backend, file_store):
        await seed(backend, 4)
        settings = AppSettings(
            max_builds_per_group=1, delete_policy=DeletePolicy.ALL, enable_auto_clean=False
        )

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert pruned == []
        assert len(await remaining_ids(backend)) == 4


# ---------------------------------------------------------------------------
# Delete policy
# ---------------------------------------------------------------------------


class TestDeletePolicy:
    async def test_ci_only_never_prunes_manual_uploads(self, backend, file_store):
        manual = await seed(backend, 3)
        ci = await seed(backend, 3, start=10, source="CI Pipeline")
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.CI_ONLY)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert set(pruned) == {ci[0].id, ci[1].id}
        assert await remaining_ids(backend) == {b.id for b in manual} | {ci[2].id}

    async def test_ci_only_with_only_manual_builds(self, backend, file_store):
        manual = await seed(backend, 5)
        settings = AppSettings(max_builds_per_group=1)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert pruned == []
        assert await remaining_ids(backend) == {b.id for b in manual}

    async def test_all_counts_every_source(self, backend, file_store):
        manual = await seed(backend, 2)
        ci = await seed(backend, 2, start=10, source="CI Pipeline")
        settings = AppSettings(max_builds_per_group=2, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert set(pruned) == {b.id for b in manual}
        assert await remaining_ids(backend) == {b.id for b in ci}


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_file_delete_failure_still_deletes_record(self, backend):
        builds = await seed(backend, 3)
        store = RecordingFileStore(fail_on=("file-0.ipa",))
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert set(pruned) == {builds[0].id, builds[1].id}
        assert await remaining_ids(backend) == {builds[2].id}
        assert store.deleted == ["file-1.ipa"]

    async def test_builds_without_files(self, backend, file_store):
        await backend.builds.create(build_data(upload_date=uploaded_at(0)), API)
        await backend.builds.create(build_data(upload_date=uploaded_at(1)), API)
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert len(pruned) == 1
        assert file_store.deleted == []


# ---------------------------------------------------------------------------
# Files shared with rebuilds
# ---------------------------------------------------------------------------


class TestSharedFiles:
    async def test_keeps_file_still_referenced(self, backend, file_store):
        original = await backend.builds.create(
            build_data(upload_date=uploaded_at(0), file_name="shared.ipa"), API
        )
        rebuilt = await backend.builds.create(
            build_data(upload_date=uploaded_at(1), file_name="shared.ipa"), API
        )
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.ALL)

        pruned = await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert pruned == [original.id]
        assert await remaining_ids(backend) == {rebuilt.id}
        assert file_store.deleted == []

    async def test_last_reference_releases_file(self, backend, file_store):
        for minutes in (0, 1):
            await backend.builds.create(
                build_data(upload_date=uploaded_at(minutes), file_name="shared.ipa"), API
            )
        newest = await backend.builds.create(
            build_data(upload_date=uploaded_at(2), file_name="newest.ipa"), API
        )
        settings = AppSettings(max_builds_per_group=1, delete_policy=DeletePolicy.ALL)

        await RetentionEngine(backend.builds, file_store).enforce(
            "Demo", Platform.IOS, Channel.BETA, settings
        )

        assert await remaining_ids(backend) == {newest.id}
        assert file_store.deleted == ["shared.ipa"]


# ---------------------------------------------------------------------------
# Upload scenario
# ---------------------------------------------------------------------------


class TestUploadScenario:
    async def test_third_upload_prunes_first(self, backend, file_store):
        settings = AppSettings(max_builds_per_group=2, delete_policy=DeletePolicy.ALL)
        engine = RetentionEngine(backend.builds, file_store)

        ids = []
        for i, name in enumerate(["A", "B", "C"]):
            build = await backend.builds.create(
                build_data(version_name=name, upload_date=uploaded_at(i), file_name=f"{name}.ipa"),
                API,
            )
            ids.append(build.id)
            await engine.enforce("Demo", Platform.IOS, Channel.BETA, settings)

        assert await remaining_ids(backend) == {ids[1], ids[2]}
        assert file_store.deleted == ["A.ipa"]
