from unittest.mock import AsyncMock, patch

from app.core.errors import DispatchError
from app.services.extraction.extraction_models import ValidationOutcome
from app.services.validation.validation_orchestrator import ValidationOrchestrator
from tests.fakes import ADMIN_TOKEN, CONTRACT_ID, USER_TOKEN

API = "/api/v1"


def _auth(token, session="browser-1"):
    return {"Authorization": f"Bearer {token}", "X-Session-Id": session}


class TestHealth:
    def test_health(self, client):
        r = client.get(f"{API}/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["lifecycle_policy_version"] == "1.0"
        assert body["pending_validations"] == 0
        assert r.headers["x-request-id"]

    def test_request_id_is_echoed(self, client):
        r = client.get(f"{API}/health", headers={"x-request-id": "req-42"})
        assert r.headers["x-request-id"] == "req-42"


class TestLifecycle:
    def test_policy(self, client):
        body = client.get(f"{API}/lifecycle/policy").json()
        assert body["forced_states"]["rescission"] == "rescinded"

    def test_view(self, client):
        body = client.get(f"{API}/contracts/{CONTRACT_ID}/lifecycle").json()
        assert body["state"] == "active"
        assert "expired" in body["allowed_targets"]

    def test_record_event_and_list(self, client, sb):
        r = client.post(
            f"{API}/contracts/{CONTRACT_ID}/events",
            json={"event_type": "expiration", "event_date": "2026-05-01", "description": "term ended"},
            headers={"Authorization": f"Bearer {USER_TOKEN}"},
        )
        assert r.status_code == 201
        body = r.json()
        assert body["new_state"] == "expired"
        assert body["state_changed"] is True
        assert body["event"]["criado_por_id"] == "user-1"
        assert sb.rows("contratos")[0]["estado_contrato"] == "expirado"

        events = client.get(f"{API}/contracts/{CONTRACT_ID}/events").json()["events"]
        assert [e["tipo_evento"] for e in events] == ["expiracao"]

    def test_invalid_event_is_409(self, client, sb):
        sb.rows("contratos")[0]["estado_contrato"] = "rascunho"
        r = client.post(f"{API}/contracts/{CONTRACT_ID}/events", json={"event_type": "rescission"})
        assert r.status_code == 409
        assert "not allowed" in r.json()["detail"]

    def test_terminal_contract_cannot_be_forced_out(self, client, sb):
        sb.rows("contratos")[0]["estado_contrato"] = "rescindido"
        r = client.post(
            f"{API}/contracts/{CONTRACT_ID}/events",
            json={"event_type": "renewal", "strict": False},
        )
        assert r.status_code == 409
        assert sb.rows("contratos")[0]["estado_contrato"] == "rescindido"
        assert sb.rows("eventos_ciclo_vida_contrato") == []

    def test_unknown_event_name_is_422(self, client):
        r = client.post(f"{API}/contracts/{CONTRACT_ID}/events", json={"event_type": "archive"})
        assert r.status_code == 422

    def test_missing_contract_is_404(self, client):
        assert client.get(f"{API}/contracts/nope/lifecycle").status_code == 404

    def test_transition(self, client):
        r = client.post(f"{API}/contracts/{CONTRACT_ID}/transition", json={"target": "expired"})
        assert r.status_code == 200
        assert r.json() == {"contract_id": CONTRACT_ID, "state": "expired"}

        r = client.post(f"{API}/contracts/{CONTRACT_ID}/transition", json={"target": "draft"})
        assert r.status_code == 409


class TestValidation:
    def test_validate_contract_requires_fields(self, client):
        r = client.post(f"{API}/validate-contract", json={"contract_id": CONTRACT_ID})
        assert r.status_code == 400
        assert r.json() == {"error": "contract_id and extraction_draft are required"}

    def test_validate_contract_simulated(self, client, sb):
        with patch("app.services.validation.cca_agent_client.settings.CCA_AGENT_URL", ""):
            r = client.post(
                f"{API}/validate-contract",
                json={"contract_id": CONTRACT_ID, "extraction_draft": {"data_termo": "2025-01-01"}},
            )
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["status"] == "validated"
        assert "error" not in body
        assert sb.rows("contratos")[0]["validation_status"] == "validated"

    def test_draft_then_extractions(self, client):
        r = client.post(
            f"{API}/contracts/{CONTRACT_ID}/extractions/draft",
            json={"extraction_data": {"data_termo": "2025-01-01"}, "confidence": 64},
        )
        assert r.status_code == 201
        assert r.json()["source"] == "lovable_ai"

        view = client.get(f"{API}/contracts/{CONTRACT_ID}/extractions").json()
        assert view["validation_status"] == "draft_only"
        assert view["active"]["extraction_data"] == {"data_termo": "2025-01-01"}

    def test_draft_for_missing_contract(self, client):
        r = client.post(f"{API}/contracts/nope/extractions/draft", json={"extraction_data": {}})
        assert r.status_code == 404

    def test_revalidate_reuses_stored_draft(self, client):
        client.post(
            f"{API}/contracts/{CONTRACT_ID}/extractions/draft",
            json={"extraction_data": {"data_termo": "2025-01-01"}},
        )
        run = AsyncMock(return_value=ValidationOutcome(success=True, status="validated"))
        with patch.object(ValidationOrchestrator, "run_validation", run):
            r = client.post(
                f"{API}/contracts/{CONTRACT_ID}/validate",
                json={"reuse_existing_draft": True, "document_path": f"{CONTRACT_ID}/a.pdf"},
            )
        assert r.status_code == 200
        args = run.await_args.args
        assert args[0] == CONTRACT_ID
        assert args[1] == {"data_termo": "2025-01-01"}
        assert args[2].startswith("https://storage.test/")

    def test_upload_schedules_validation(self, client, sb):
        with patch.object(client.app.state.dispatcher, "submit") as submit:
            r = client.post(
                f"{API}/contracts/{CONTRACT_ID}/documents",
                files={"file": ("nda.pdf", b"%PDF-1.4", "application/pdf")},
            )
        assert r.status_code == 202
        body = r.json()
        assert body["storage_key"] == f"{CONTRACT_ID}/nda.pdf"
        assert body["validation_scheduled"] is True
        assert sb.files[("contracts", f"{CONTRACT_ID}/nda.pdf")] == b"%PDF-1.4"
        assert sb.rows("contratos")[0]["validation_status"] == "validating"
        contract_id, draft, reference = submit.call_args.args
        assert (contract_id, draft) == (CONTRACT_ID, {})
        assert reference.endswith("ttl=3600")

    def test_upload_marks_failed_when_validation_cannot_be_scheduled(self, client, sb):
        with patch.object(client.app.state.dispatcher, "submit", side_effect=DispatchError("no loop")):
            r = client.post(
                f"{API}/contracts/{CONTRACT_ID}/documents",
                files={"file": ("nda.pdf", b"%PDF-1.4", "application/pdf")},
            )
        assert r.status_code == 202
        body = r.json()
        assert body["validation_scheduled"] is False
        assert body["validation_status"] == "failed"
        assert sb.rows("contratos")[0]["validation_status"] == "failed"

    def test_watch_and_unwatch(self, client, sb):
        sb.tables["contract_ai_jobs"] = [
            {"contract_id": CONTRACT_ID, "status": "validated", "started_at": "2026-01-01T00:00:00"},
        ]
        body = client.post(f"{API}/contracts/{CONTRACT_ID}/validation-watch").json()
        assert body["polling"] is False

        body = client.delete(f"{API}/contracts/{CONTRACT_ID}/validation-watch").json()
        assert body == {"contract_id": CONTRACT_ID, "polling": False}


class TestImpersonation:
    def test_requires_browser_session(self, client):
        assert client.get(f"{API}/impersonation").status_code == 400

    def test_full_cycle(self, client):
        r = client.post(
            f"{API}/impersonation/org",
            json={"org_id": "org-9", "org_name": "Acme", "reason": "Support ticket"},
            headers=_auth(ADMIN_TOKEN),
        )
        body = r.json()
        assert body["success"] is True
        assert body["effective_organization_id"] == "org-9"
        assert body["notices"][0]["level"] == "success"

        # next request on the same browser session sees the restored state
        body = client.get(f"{API}/impersonation", headers=_auth(ADMIN_TOKEN)).json()
        assert body["state"]["is_impersonating"] is True

        other = client.get(f"{API}/impersonation", headers=_auth(ADMIN_TOKEN, "browser-2")).json()
        assert other["state"]["is_impersonating"] is False

        body = client.post(f"{API}/impersonation/stop", headers=_auth(ADMIN_TOKEN)).json()
        assert body["success"] is True
        assert body["state"]["is_impersonating"] is False

    def test_non_admin(self, client):
        body = client.post(
            f"{API}/impersonation/user",
            json={"user_id": "u-7", "user_name": "Jo", "reason": "Support ticket"},
            headers=_auth(USER_TOKEN),
        ).json()
        assert body["success"] is False
        assert body["notices"] == [
            {"level": "error", "message": "Only platform administrators can use this feature"}
        ]

    def test_teardown(self, client):
        client.post(
            f"{API}/impersonation/org",
            json={"org_id": "org-9", "org_name": "Acme", "reason": "Support ticket"},
            headers=_auth(ADMIN_TOKEN),
        )
        body = client.post(f"{API}/impersonation/teardown", headers=_auth(ADMIN_TOKEN)).json()
        assert body["state"]["is_impersonating"] is False

    def test_session_id_does_not_carry_another_users_impersonation(self, client, sb):
        client.post(
            f"{API}/impersonation/org",
            json={"org_id": "org-9", "org_name": "Acme", "reason": "Support ticket"},
            headers=_auth(ADMIN_TOKEN, "tab-1"),
        )

        body = client.get(f"{API}/impersonation", headers=_auth(USER_TOKEN, "tab-1")).json()
        assert body["state"]["is_impersonating"] is False
        assert body["effective_organization_id"] is None

        body = client.post(f"{API}/impersonation/stop", headers=_auth(USER_TOKEN, "tab-1")).json()
        assert body["success"] is False
        assert sb.rows("impersonation_sessions")[0]["status"] == "active"

        body = client.get(f"{API}/impersonation", headers=_auth(ADMIN_TOKEN, "tab-1")).json()
        assert body["effective_organization_id"] == "org-9"

    def test_reads_do_not_allocate_session_caches(self, client):
        for n in range(5):
            client.get(f"{API}/impersonation", headers=_auth(ADMIN_TOKEN, f"random-{n}"))
        assert len(client.app.state.tenant_caches) == 0
        assert len(client.app.state.session_store) == 0

    def test_stop_releases_the_session_cache(self, client):
        client.post(
            f"{API}/impersonation/org",
            json={"org_id": "org-9", "org_name": "Acme", "reason": "Support ticket"},
            headers=_auth(ADMIN_TOKEN),
        )
        client.app.state.tenant_caches.for_session("browser-1").set(("homeConfig", "org-9"), {})

        client.post(f"{API}/impersonation/stop", headers=_auth(ADMIN_TOKEN))
        assert client.app.state.tenant_caches.get("browser-1") is None
        assert len(client.app.state.session_store) == 0
