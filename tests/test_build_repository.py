"""Contract tests for the build and feedback repositories, run on both backends."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from apprelay.backends import create_backend
from apprelay.exceptions import NotFoundError, ValidationError
from apprelay.schemas import BuildSource, BuildStatus, Channel, Platform
from tests.conftest import build_data, make_config, uploaded_at

API = "http://localhost:3000"


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_assigns_id_and_derived_fields(self, backend):
        build = await backend.builds.create(build_data(), API)

        assert build.id
        assert build.qr_code_url == f"{API}/builds/{build.id}/qr"
        assert build.upload_date is not None
        assert build.build_status == BuildStatus.SUCCESS
        assert build.source == BuildSource.MANUAL_UPLOAD
        assert build.download_count == 0
        assert await backend.builds.get_by_id(build.id) == build

    async def test_ids_are_unique(self, backend):
        first = await backend.builds.create(build_data(), API)
        second = await backend.builds.create(build_data(), API)
        assert first.id != second.id

    async def test_keeps_given_upload_date(self, backend):
        build = await backend.builds.create(build_data(upload_date=uploaded_at(5)), API)
        stored = await backend.builds.get_by_id(build.id)
        assert stored.upload_date == uploaded_at(5)

    @pytest.mark.parametrize(
        "field", ["app_name", "version_name", "version_code", "platform", "channel", "changelog"]
    )
    async def test_missing_required_field(self, backend, field):
        data = build_data()
        del data[field]
        with pytest.raises(ValidationError):
            await backend.builds.create(data, API)

    async def test_invalid_platform(self, backend):
        with pytest.raises(ValidationError):
            await backend.builds.create(build_data(platform="Windows"), API)

    async def test_invalid_channel(self, backend):
        with pytest.raises(ValidationError):
            await backend.builds.create(build_data(channel="Nightly"), API)

    async def test_allowed_udids_round_trip(self, backend):
        build = await backend.builds.create(
            build_data(allowed_udids=["udid-1", "udid-2"]), API
        )
        stored = await backend.builds.get_by_id(build.id)
        assert stored.allowed_udids == ["udid-1", "udid-2"]

    async def test_empty_udids_mean_unrestricted(self, backend):
        build = await backend.builds.create(build_data(allowed_udids=[]), API)
        stored = await backend.builds.get_by_id(build.id)
        assert stored.allowed_udids is None


# ---------------------------------------------------------------------------
# get_by_id / list
# ---------------------------------------------------------------------------


class TestQueries:
    async def test_get_missing(self, backend):
        assert await backend.builds.get_by_id("missing") is None
        with pytest.raises(NotFoundError):
            await backend.builds.require("missing")

    async def test_list_newest_first(self, backend):
        old = await backend.builds.create(build_data(upload_date=uploaded_at(1)), API)
        new = await backend.builds.create(build_data(upload_date=uploaded_at(3)), API)
        mid = await backend.builds.create(build_data(upload_date=uploaded_at(2)), API)

        builds = await backend.builds.list()
        assert [b.id for b in builds] == [new.id, mid.id, old.id]

    async def test_aware_upload_dates_order_by_utc(self, backend):
        naive = await backend.builds.create(build_data(upload_date=uploaded_at(30)), API)
        # 13:00 at +02:00 is 11:00 UTC, older than the naive 12:30
        aware = await backend.builds.create(
            build_data(upload_date=datetime(2026, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=2)))),
            API,
        )

        assert aware.upload_date == datetime(2026, 1, 1, 11, 0)
        builds = await backend.builds.list()
        assert [b.id for b in builds] == [naive.id, aware.id]

    async def test_count_by_file_name(self, backend):
        first = await backend.builds.create(build_data(file_name="shared.ipa"), API)
        await backend.builds.create(build_data(file_name="shared.ipa"), API)
        await backend.builds.create(build_data(file_name="other.ipa"), API)

        assert await backend.builds.count_by_file_name("shared.ipa") == 2
        assert await backend.builds.count_by_file_name("shared.ipa", exclude_id=first.id) == 1
        assert await backend.builds.count_by_file_name("missing.ipa") == 0
        assert await backend.builds.is_file_shared(first)

    async def test_list_filters_are_conjunctive(self, backend):
        ios_beta = await backend.builds.create(build_data(), API)
        await backend.builds.create(build_data(platform="Android"), API)
        await backend.builds.create(build_data(channel="Production"), API)

        assert [b.id for b in await backend.builds.list(platform=Platform.IOS, channel=Channel.BETA)] == [
            ios_beta.id
        ]
        assert len(await backend.builds.list(platform=Platform.IOS)) == 2
        assert len(await backend.builds.list(channel=Channel.BETA)) == 2

    async def test_list_group_with_source(self, backend):
        manual = await backend.builds.create(build_data(upload_date=uploaded_at(1)), API)
        ci = await backend.builds.create(
            build_data(source="CI Pipeline", upload_date=uploaded_at(2)), API
        )
        await backend.builds.create(build_data(app_name="Other"), API)

        group = await backend.builds.list_group("Demo", Platform.IOS, Channel.BETA)
        assert [b.id for b in group] == [ci.id, manual.id]

        ci_only = await backend.builds.list_group(
            "Demo", Platform.IOS, Channel.BETA, source=BuildSource.CI_PIPELINE
        )
        assert [b.id for b in ci_only] == [ci.id]


# ---------------------------------------------------------------------------
# increment_download_count
# ---------------------------------------------------------------------------


class TestIncrementDownloadCount:
    async def test_increments(self, backend):
        build = await backend.builds.create(build_data(), API)
        updated = await backend.builds.increment_download_count(build.id)
        assert updated.download_count == 1

    async def test_missing_build(self, backend):
        assert await backend.builds.increment_download_count("missing") is None

    async def test_concurrent_increments_are_not_lost(self, backend):
        build = await backend.builds.create(build_data(), API)

        await asyncio.gather(
            *[backend.builds.increment_download_count(build.id) for _ in range(10)]
        )

        stored = await backend.builds.get_by_id(build.id)
        assert stored.download_count == 10


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    async def test_delete_existing(self, backend):
        build = await backend.builds.create(build_data(), API)
        assert await backend.builds.delete(build.id) is True
        assert await backend.builds.get_by_id(build.id) is None

    async def test_delete_twice_is_safe(self, backend):
        build = await backend.builds.create(build_data(), API)
        assert await backend.builds.delete(build.id) is True
        assert await backend.builds.delete(build.id) is False

    async def test_delete_missing(self, backend):
        assert await backend.builds.delete("missing") is False

    async def test_feedback_cascades(self, backend):
        build = await backend.builds.create(build_data(), API)
        await backend.feedbacks.create(build.id, "carol", "Crashes on launch")

        await backend.builds.delete(build.id)

        assert await backend.feedbacks.list_for_build(build.id) == []


# ---------------------------------------------------------------------------
# update_fields
# ---------------------------------------------------------------------------


class TestUpdateFields:
    async def test_partial_update(self, backend):
        build = await backend.builds.create(
            build_data(source="CI Pipeline", pipeline_status="In Progress", size="N/A"), API
        )

        updated = await backend.builds.update_fields(
            build.id, {"pipeline_status": "Success", "size": "12.0 MB"}
        )

        assert updated.pipeline_status == BuildStatus.SUCCESS
        assert updated.size == "12.0 MB"
        assert updated.changelog == build.changelog
        assert updated.upload_date == build.upload_date
        assert updated.version_name == build.version_name

    async def test_missing_build(self, backend):
        assert await backend.builds.update_fields("missing", {"size": "1 MB"}) is None

    async def test_immutable_fields_rejected(self, backend):
        build = await backend.builds.create(build_data(), API)
        with pytest.raises(ValidationError):
            await backend.builds.update_fields(build.id, {"app_name": "Renamed"})
        with pytest.raises(ValidationError):
            await backend.builds.update_fields(build.id, {"download_count": 0})

    async def test_required_fields_cannot_be_nulled(self, backend):
        build = await backend.builds.create(build_data(), API)
        for field in ("version_name", "version_code", "changelog", "build_status"):
            with pytest.raises(ValidationError):
                await backend.builds.update_fields(build.id, {field: None})
        assert await backend.builds.get_by_id(build.id) == build

    async def test_empty_update_returns_current(self, backend):
        build = await backend.builds.create(build_data(), API)
        assert await backend.builds.update_fields(build.id, {}) == build


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


class TestFeedback:
    async def test_create_and_list_newest_first(self, backend):
        build = await backend.builds.create(build_data(), API)
        first = await backend.feedbacks.create(build.id, "carol", "First")
        second = await backend.feedbacks.create(build.id, "dave", "Second")

        feedbacks = await backend.feedbacks.list_for_build(build.id)

        assert [f.id for f in feedbacks] == [second.id, first.id]
        assert feedbacks[1].user == "carol"
        assert feedbacks[1].build_id == build.id

    async def test_unknown_build(self, backend):
        with pytest.raises(NotFoundError):
            await backend.feedbacks.create("missing", "carol", "Hello")


# ---------------------------------------------------------------------------
# Backend equivalence
# ---------------------------------------------------------------------------


class TestBackendEquivalence:
    async def test_identical_build_json(self, tmp_path):
        data = build_data(
            upload_date=uploaded_at(0),
            allowed_udids=["udid-1"],
            source="CI Pipeline",
            pipeline_status="In Progress",
            commit_hash="abc",
        )
        payloads = []
        for name in ("remote", "local"):
            backend = await create_backend(make_config(tmp_path / name, database_backend=name))
            try:
                build = await backend.builds.create(data, API)
                await backend.builds.increment_download_count(build.id)
                stored = await backend.builds.get_by_id(build.id)
                payload = stored.model_dump(mode="json", by_alias=True)
                payload.pop("id")
                payload.pop("qrCodeUrl")
                payloads.append(payload)
            finally:
                await backend.close()

        assert payloads[0] == payloads[1]
        assert payloads[0]["allowedUDIDs"] == ["udid-1"]
        assert payloads[0]["downloadCount"] == 1
        assert payloads[0]["buildStatus"] == "Success"
        assert payloads[0]["pipelineStatus"] == "In Progress"

    async def test_aware_upload_date_identical(self, tmp_path):
        data = build_data(upload_date=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))
        payloads = []
        for name in ("remote", "local"):
            backend = await create_backend(make_config(tmp_path / name, database_backend=name))
            try:
                build = await backend.builds.create(data, API)
                stored = await backend.builds.get_by_id(build.id)
                payloads.append(stored.model_dump(mode="json", by_alias=True)["uploadDate"])
            finally:
                await backend.close()

        assert payloads == ["2026-01-01T12:00:00", "2026-01-01T12:00:00"]
