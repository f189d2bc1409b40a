"""
Tests for the vetting HTTP surface.
The pipeline is replaced through FastAPI dependency overrides.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from src.api.dependencies import get_pipeline
from src.api.main import app
from src.core.extraction_session import ConversationClosedError, ExtractionTurnResult, SessionNotFoundError
from src.core.vetting_orchestrator import ProspectNotFoundError, VettingImpossibleError
from src.models.extraction import CompletenessResult, FieldCategory, FieldExtraction, FieldName, FieldValue
from src.models.snapshot import (
    ConfidenceLevel,
    ReadinessCategory,
    SignalName,
    SignalScore,
    ValidationSnapshot,
    VettingResult,
)
from src.models.validation import FailureReason
from tests.conftest import T0, make_conversation


def snapshot(score=72.0) -> ValidationSnapshot:
    return ValidationSnapshot(
        id="65f0c0ffee0000000000abcd",
        prospect_id="p-acme",
        final_score=score,
        category=ReadinessCategory.WARM,
        confidence_level=ConfidenceLevel.HIGH,
        per_signal_scores=[SignalScore(signal=SignalName.CONVERSATION, score=70, weight=0.4)],
        conversation_score=70,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def pipeline():
    mock = MagicMock()
    for method in (
        "start_or_continue_extraction", "record_assistant_turn", "close_session",
        "register_prospect", "run_vetting", "get_snapshot", "list_snapshots",
    ):
        setattr(mock, method, AsyncMock())
    return mock


@pytest.fixture
def client(pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSessionRoutes:

    def test_user_turn_returns_extraction(self, client, pipeline):
        extraction = FieldExtraction(fields={
            FieldName.INDUSTRY: FieldValue(value="construction", category=FieldCategory.CLEAR),
        })
        pipeline.start_or_continue_extraction.return_value = ExtractionTurnResult(
            session_id="s-1",
            extraction=extraction,
            completeness=CompletenessResult(
                is_complete=False, completeness_score=16.67,
                missing_fields=[FieldName.BUDGET_STATUS], unclear_fields=[],
            ),
            readiness_score=12.5,
            readiness_category=ReadinessCategory.COLD,
            session_closed=False,
        )

        response = client.post("/sessions/s-1/turns", json={"text": "We're builders", "prospect_id": "p-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["fields"]["industry"] == "construction"
        assert data["fields"]["budget_status"] is None
        assert data["missing_fields"] == ["budget_status"]
        assert data["readiness_category"] == "COLD"
        pipeline.start_or_continue_extraction.assert_awaited_once_with("s-1", "We're builders", "p-1")

    def test_assistant_turn_is_only_recorded(self, client, pipeline):
        pipeline.record_assistant_turn.return_value = make_conversation("s-1", "hi")

        response = client.post("/sessions/s-1/turns", json={"text": "What industry?", "role": "assistant"})

        assert response.status_code == 200
        assert response.json()["session_closed"] is False
        pipeline.start_or_continue_extraction.assert_not_called()

    def test_turn_on_closed_session_conflicts(self, client, pipeline):
        pipeline.start_or_continue_extraction.side_effect = ConversationClosedError("s-1", "complete")

        response = client.post("/sessions/s-1/turns", json={"text": "more"})

        assert response.status_code == 409

    def test_empty_turn_rejected(self, client):
        response = client.post("/sessions/s-1/turns", json={"text": ""})

        assert response.status_code == 422

    def test_close_session(self, client, pipeline):
        conversation = make_conversation("s-1", "hi")
        conversation.close("abandoned", at=T0)
        pipeline.close_session.return_value = conversation

        response = client.post("/sessions/s-1/close", json={"reason": "abandoned"})

        assert response.status_code == 200
        assert response.json() == {"session_id": "s-1", "turns": 1, "is_closed": True, "closed_reason": "abandoned"}
        pipeline.close_session.assert_awaited_once_with("s-1", "abandoned")

    def test_close_unknown_session(self, client, pipeline):
        pipeline.close_session.side_effect = SessionNotFoundError("s-9")

        response = client.post("/sessions/s-9/close")

        assert response.status_code == 404


class TestProspectRoutes:

    def test_register_prospect(self, client, pipeline):
        pipeline.register_prospect.side_effect = lambda prospect: prospect

        response = client.put("/prospects/p-1", json={"company_name": "Acme", "employee_count": 40})

        assert response.status_code == 200
        assert response.json()["prospect_id"] == "p-1"
        registered = pipeline.register_prospect.await_args.args[0]
        assert registered.company_name == "Acme"
        assert registered.employee_count == 40

    def test_run_vetting(self, client, pipeline):
        pipeline.run_vetting.return_value = VettingResult(prospect_id="p-acme", snapshot=snapshot(), cached=True)

        response = client.post("/prospects/p-acme/vetting?force_refresh=true")

        assert response.status_code == 200
        data = response.json()
        assert data["cached"] is True
        assert data["snapshot"]["category"] == "WARM"
        assert data["snapshot"]["created_at"] == T0.isoformat()
        pipeline.run_vetting.assert_awaited_once_with("p-acme", force_refresh=True)

    def test_vetting_unknown_prospect(self, client, pipeline):
        pipeline.run_vetting.side_effect = ProspectNotFoundError("p-x")

        assert client.post("/prospects/p-x/vetting").status_code == 404

    def test_vetting_without_conversation(self, client, pipeline):
        pipeline.run_vetting.side_effect = VettingImpossibleError(
            "p-1", FailureReason.NO_CONVERSATION, "no conversation data"
        )

        response = client.post("/prospects/p-1/vetting")

        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "no_conversation"

    def test_latest_snapshot(self, client, pipeline):
        pipeline.get_snapshot.return_value = snapshot()

        response = client.get("/prospects/p-acme/snapshot")

        assert response.status_code == 200
        assert response.json()["final_score"] == 72.0

    def test_never_vetted(self, client, pipeline):
        pipeline.get_snapshot.return_value = None

        assert client.get("/prospects/p-new/snapshot").status_code == 404

    def test_snapshot_history(self, client, pipeline):
        pipeline.list_snapshots.return_value = [snapshot(80.0), snapshot(72.0)]

        response = client.get("/prospects/p-acme/snapshots?limit=2")

        assert [s["final_score"] for s in response.json()] == [80.0, 72.0]
        pipeline.list_snapshots.assert_awaited_once_with("p-acme", limit=2)

    def test_history_limit_bounds(self, client):
        assert client.get("/prospects/p-acme/snapshots?limit=0").status_code == 422


class TestPipelineDependency:

    def test_503_before_startup(self):
        client = TestClient(app)

        response = client.get("/prospects/p-acme/snapshot")

        assert response.status_code == 503
