import asyncio
import threading

import httpx
import pytest

from damage_assessor.common.enums import ApprovalStatus, Priority, Severity
from damage_assessor.core.assessments.schemas import (
    AssessmentMetrics,
    AssessmentUpsert,
    PhotoSetApproval,
    SerializedApproval,
)
from damage_assessor.core.ingestion.pipeline import IngestionPipeline
from damage_assessor.core.ingestion.schemas import ExtractedMetadata
from damage_assessor.core.session.repository import (
    InMemorySessionRepository,
    JsonFileSessionRepository,
    SessionSnapshot,
)
from damage_assessor.core.session.state import AssessmentSession, find_resume_candidate
from damage_assessor.integrations.assessment_api import AssessmentApiClient


class NoMetadata:
    def extract(self, file):
        return ExtractedMetadata()


@pytest.fixture
async def api(app):
    async with AssessmentApiClient(base_url="http://test/api", transport=httpx.ASGITransport(app=app)) as client:
        yield client


@pytest.fixture
def upload(make_image, make_csv):
    return [
        make_image("Main/R1/01-Precondition/a.jpg"),
        make_image("Main/R1/02-Damage/b.jpg"),
        make_image("Main/R2/02-Damage/c.jpg"),
        make_image("Main/R3/02-Damage/d.jpg"),
        make_csv("Main/details.csv", "damageId,damageType\nR1,Crack\n"),
    ]


@pytest.fixture
def session(api):
    return AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))


@pytest.mark.asyncio
async def test_ingest_loads_photo_sets(session, upload):
    result = await session.ingest(upload)

    assert [ps.report_id for ps in session.photo_sets] == ["R1", "R2", "R3"]
    assert session.last_result is result
    assert session.resume_candidate is None
    assert session.approvals == {}


@pytest.mark.asyncio
async def test_quick_status_keeps_other_fields_and_persists(session, upload, assessment_store):
    await session.ingest(upload)
    first = session.set_approval(
        "R1", PhotoSetApproval(status=ApprovalStatus.QUERY, comments="roof?", severity=Severity.MAJOR)
    )
    await session.drain()
    await asyncio.sleep(0.002)

    updated = session.apply_quick_status("R1", ApprovalStatus.APPROVED)
    await session.drain()

    assert updated.status == ApprovalStatus.APPROVED
    assert updated.comments == "roof?"
    assert updated.severity == Severity.MAJOR
    assert updated.timestamp > first.timestamp

    stored = await assessment_store.get("R1")
    assert stored.approval.status == ApprovalStatus.APPROVED
    assert stored.approval.comments == "roof?"


@pytest.mark.asyncio
async def test_save_comments_on_pending_report(session, upload, assessment_store):
    await session.ingest(upload)
    approval = session.save_comments("R2", "needs a second look")
    await session.drain()

    assert approval.status == ApprovalStatus.PENDING
    assert (await assessment_store.get("R2")).approval.comments == "needs a second look"


@pytest.mark.asyncio
async def test_metrics_persist_alongside_approval(session, upload, assessment_store):
    await session.ingest(upload)
    session.update_approval_fields("R1", priority=Priority.HIGH, estimate_days=2)
    await session.drain()
    session.set_metrics("R1", AssessmentMetrics(distance_meters=7.5, cost_aud=300))
    await session.drain()

    stored = await assessment_store.get("R1")
    assert stored.approval.priority == Priority.HIGH
    assert stored.approval.estimate_days == 2
    assert stored.metrics.distance_meters == 7.5


@pytest.mark.asyncio
async def test_failed_persist_keeps_local_change(upload):
    def fail(request):
        if request.method == "GET":
            return httpx.Response(200, json=[])
        return httpx.Response(500, json={"error": "Internal server error"})

    async with AssessmentApiClient(base_url="http://api/api", transport=httpx.MockTransport(fail)) as api:
        session = AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))
        await session.ingest(upload)
        session.apply_quick_status("R1", ApprovalStatus.REJECTED)
        await session.drain()

    assert session.status_of("R1") == ApprovalStatus.REJECTED


@pytest.mark.asyncio
async def test_unreachable_api_does_not_block_ingest(upload):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async with AssessmentApiClient(base_url="http://api/api", transport=httpx.MockTransport(refuse)) as api:
        session = AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))
        result = await session.ingest(upload)

    assert len(result.photo_sets) == 3
    assert session.resume_candidate is None


@pytest.mark.asyncio
async def test_resume_is_offered_and_applied_on_request(session, upload, assessment_store):
    saved = SerializedApproval(status=ApprovalStatus.APPROVED, comments="done", timestamp="2024-05-01T08:00:00.000Z")
    await assessment_store.upsert(AssessmentUpsert(damage_id="R1", approval=saved))
    await assessment_store.upsert(
        AssessmentUpsert(damage_id="R2", metrics=AssessmentMetrics(cost_aud=50))
    )
    await assessment_store.upsert(AssessmentUpsert(damage_id="R99", approval=saved))

    await session.ingest(upload)

    candidate = session.resume_candidate
    assert candidate is not None
    assert set(candidate.approvals) == {"R1"}
    assert set(candidate.metrics) == {"R2"}
    assert candidate.overlap_count == 2
    # nothing applied until requested
    assert session.approvals == {}

    session.set_approval("R3", PhotoSetApproval(status=ApprovalStatus.QUERY))
    assert session.apply_resume() is True

    assert session.approvals["R1"].comments == "done"
    assert session.approvals["R1"].to_serialized().timestamp == "2024-05-01T08:00:00.000Z"
    assert session.approvals["R3"].status == ApprovalStatus.QUERY
    assert session.metrics["R2"].cost_aud == 50
    assert session.resume_candidate is None
    assert session.apply_resume() is False
    await session.drain()


@pytest.mark.asyncio
async def test_dismiss_resume(session, upload, assessment_store):
    await assessment_store.upsert(
        AssessmentUpsert(damage_id="R1", metrics=AssessmentMetrics(distance_meters=1.0))
    )
    await session.ingest(upload)
    assert session.resume_candidate is not None

    session.dismiss_resume()

    assert session.resume_candidate is None
    assert session.metrics == {}


@pytest.mark.asyncio
async def test_ingest_while_busy_is_ignored(make_image):
    release = threading.Event()

    class SlowExtractor:
        def extract(self, file):
            release.wait(timeout=5)
            return ExtractedMetadata()

    session = AssessmentSession(pipeline=IngestionPipeline(extractor=SlowExtractor()))
    first = asyncio.create_task(session.ingest([make_image("Main/R1/02-Damage/a.jpg")]))
    await asyncio.sleep(0)

    assert session.is_ingesting
    assert await session.ingest([make_image("Main/R2/02-Damage/b.jpg")]) is None

    release.set()
    await first
    assert [ps.report_id for ps in session.photo_sets] == ["R1"]


@pytest.mark.asyncio
async def test_ingest_ignored_while_saved_assessments_load(make_image):
    release = asyncio.Event()

    async def slow_listing(request):
        await release.wait()
        return httpx.Response(200, json=[])

    async with AssessmentApiClient(base_url="http://api/api", transport=httpx.MockTransport(slow_listing)) as api:
        session = AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))
        first = asyncio.create_task(session.ingest([make_image("Main/R1/02-Damage/a.jpg")]))
        for _ in range(500):
            if session.photo_sets:
                break
            await asyncio.sleep(0.01)

        assert not session.pipeline.is_running
        assert session.is_ingesting
        assert await session.ingest([make_image("Main/R2/02-Damage/b.jpg")]) is None

        release.set()
        assert await first is not None

    assert [ps.report_id for ps in session.photo_sets] == ["R1"]
    assert not session.is_ingesting


@pytest.mark.asyncio
async def test_non_json_api_response_is_logged_not_raised(upload):
    def proxy_page(request):
        return httpx.Response(200, text="<html>proxy</html>", headers={"content-type": "text/html"})

    async with AssessmentApiClient(base_url="http://api/api", transport=httpx.MockTransport(proxy_page)) as api:
        session = AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))
        result = await session.ingest(upload)
        session.apply_quick_status("R1", ApprovalStatus.APPROVED)
        await session.drain()

    assert len(result.photo_sets) == 3
    assert session.resume_candidate is None
    assert session.status_of("R1") == ApprovalStatus.APPROVED


@pytest.mark.asyncio
async def test_invalid_saved_record_does_not_block_ingest(upload):
    def bad_records(request):
        return httpx.Response(200, json=[{"id": "R1"}])

    async with AssessmentApiClient(base_url="http://api/api", transport=httpx.MockTransport(bad_records)) as api:
        session = AssessmentSession(api=api, pipeline=IngestionPipeline(extractor=NoMetadata()))
        result = await session.ingest(upload)

    assert len(result.photo_sets) == 3
    assert session.resume_candidate is None


@pytest.mark.asyncio
async def test_filters_and_dashboard(upload):
    session = AssessmentSession(pipeline=IngestionPipeline(extractor=NoMetadata()))
    await session.ingest(upload)
    session.apply_quick_status("R1", ApprovalStatus.APPROVED)
    session.apply_quick_status("R2", ApprovalStatus.QUERY)

    assert session.filter_report_ids() == ["R1", "R2", "R3"]
    assert session.filter_report_ids(status="approved") == ["R1"]
    assert session.filter_report_ids(status="pending") == ["R3"]
    assert session.filter_report_ids(search="r2") == ["R2"]

    summary = session.dashboard_summary()
    assert summary.model_dump(by_alias=True) == {
        "totalReports": 3,
        "approved": 1,
        "queried": 1,
        "rejected": 0,
        "pending": 1,
        "detailsMatched": 1,
    }


def test_find_resume_candidate_without_saved_records():
    assert find_resume_candidate([], ["R1"]) is None


@pytest.mark.asyncio
async def test_snapshot_round_trip_through_json_file(tmp_path, upload):
    session = AssessmentSession(pipeline=IngestionPipeline(extractor=NoMetadata()))
    await session.ingest(upload)
    session.update_approval_fields("R1", status=ApprovalStatus.APPROVED, comments="ok", cost_range_aud="100-200")
    session.set_metrics("R1", AssessmentMetrics(cost_aud=150))

    repository = JsonFileSessionRepository(tmp_path / "exports" / "session.json")
    assert repository.load() is None
    repository.save(session.snapshot())

    raw = (tmp_path / "exports" / "session.json").read_text()
    assert '"metricsById"' in raw
    assert '"costRangeAud"' in raw
    assert '"costAUD"' in raw

    restored = AssessmentSession()
    restored.restore(repository.load())
    assert restored.approvals["R1"].comments == "ok"
    assert restored.approvals["R1"].status == ApprovalStatus.APPROVED
    assert restored.metrics["R1"].cost_aud == 150


def test_in_memory_repository_copies_snapshot():
    repository = InMemorySessionRepository()
    assert repository.load() is None

    snapshot = SessionSnapshot(metrics_by_id={"R1": AssessmentMetrics(cost_aud=1)})
    repository.save(snapshot)
    snapshot.metrics_by_id["R2"] = AssessmentMetrics()

    assert set(repository.load().metrics_by_id) == {"R1"}
