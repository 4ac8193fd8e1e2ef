from datetime import datetime, timedelta

import requests

from resume_ab import service as service_module


def _create_experiment(client, headers, name="Resume format test"):
    response = client.post(
        "/experiments",
        json={"name": name, "material_type": "resume"},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


def _add_variant(client, headers, experiment_id, name, **extra):
    response = client.post(
        f"/experiments/{experiment_id}/variants",
        json={"name": name, **extra},
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


def _assign(client, headers, experiment_id, job_id):
    return client.post(
        f"/experiments/{experiment_id}/assign-job",
        json={"job_id": job_id, "job_details": {"industry": "retail"}},
        headers=headers,
    )


def test_create_experiment_defaults(client, headers):
    experiment = _create_experiment(client, headers)

    assert experiment["status"] == "active"
    assert experiment["minimum_sample_size"] == 10
    assert experiment["material_type"] == "resume"
    assert experiment["owner_id"] == "user-1"
    assert experiment["end_date"] is None


def test_missing_user_header_is_unauthorized(client):
    response = client.get("/experiments")

    assert response.status_code == 401


def test_experiment_appears_in_list_page(client, headers):
    _create_experiment(client, headers, name="List Page Experiment")

    list_response = client.get("/experiments", headers=headers)
    assert list_response.status_code == 200
    assert "List Page Experiment" in [e["name"] for e in list_response.json()]

    # Nobody else sees it
    other = client.get("/experiments", headers={"X-User-Id": "user-2"})
    assert other.json() == []


def test_other_users_experiment_is_not_found(client, headers):
    experiment = _create_experiment(client, headers)

    response = client.get(f"/experiments/{experiment['id']}", headers={"X-User-Id": "user-2"})

    assert response.status_code == 404


def test_completing_sets_end_date(client, headers):
    experiment = _create_experiment(client, headers)

    paused = client.put(
        f"/experiments/{experiment['id']}/status", json={"status": "paused"}, headers=headers
    ).json()
    assert paused["status"] == "paused"
    assert paused["end_date"] is None

    completed = client.put(
        f"/experiments/{experiment['id']}/status", json={"status": "completed"}, headers=headers
    ).json()
    assert completed["status"] == "completed"
    assert completed["end_date"] is not None


def test_reopening_clears_end_date(client, headers):
    experiment = _create_experiment(client, headers)
    client.put(
        f"/experiments/{experiment['id']}/status", json={"status": "completed"}, headers=headers
    )

    reopened = client.put(
        f"/experiments/{experiment['id']}/status", json={"status": "active"}, headers=headers
    ).json()

    assert reopened["status"] == "active"
    assert reopened["end_date"] is None


def test_invalid_status_is_rejected(client, headers):
    experiment = _create_experiment(client, headers)

    response = client.put(
        f"/experiments/{experiment['id']}/status", json={"status": "archived"}, headers=headers
    )

    assert response.status_code == 422


def test_assign_without_variants_conflicts(client, headers):
    experiment = _create_experiment(client, headers)

    response = _assign(client, headers, experiment["id"], 1)

    assert response.status_code == 409


def test_assign_returns_trial_with_variant(client, headers):
    experiment = _create_experiment(client, headers)
    variant = _add_variant(client, headers, experiment["id"], "Two-column", format_type="modern")

    response = _assign(client, headers, experiment["id"], 55)

    assert response.status_code == 200
    body = response.json()
    assert body["job_id"] == 55
    assert body["job_industry"] == "retail"
    assert body["variant"]["id"] == variant["id"]
    assert body["variant"]["format_type"] == "modern"


def test_assigning_same_job_twice_conflicts(client, headers):
    experiment = _create_experiment(client, headers)
    _add_variant(client, headers, experiment["id"], "A")

    assert _assign(client, headers, experiment["id"], 9).status_code == 200
    assert _assign(client, headers, experiment["id"], 9).status_code == 409


def test_track_response_for_unknown_job_returns_null(client, headers):
    response = client.post(
        "/track-response",
        json={"job_id": 12345, "response_data": {"response_type": "rejection"}},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json() is None


def test_track_response_before_assignment_is_invalid(client, headers):
    experiment = _create_experiment(client, headers)
    _add_variant(client, headers, experiment["id"], "A")
    trial = _assign(client, headers, experiment["id"], 4).json()
    assigned_at = datetime.fromisoformat(trial["assigned_at"])

    response = client.post(
        "/track-response",
        json={
            "job_id": 4,
            "response_data": {
                "response_type": "rejection",
                "response_received_at": (assigned_at - timedelta(days=1)).isoformat(),
            },
        },
        headers=headers,
    )

    assert response.status_code == 422


def test_full_experiment_flow(client, headers):
    experiment = _create_experiment(client, headers)
    exp_id = experiment["id"]
    _add_variant(client, headers, exp_id, "Classic", format_type="chronological")
    _add_variant(client, headers, exp_id, "Modern", format_type="functional")

    for job_id in range(1, 13):
        trial = _assign(client, headers, exp_id, job_id).json()
        assigned_at = datetime.fromisoformat(trial["assigned_at"])
        response_type = "interview_invite" if job_id % 3 == 0 else "no_response"
        response_data = {"response_type": response_type}
        if response_type != "no_response":
            response_data["response_received_at"] = (assigned_at + timedelta(hours=72)).isoformat()
            response_data["reached_interview"] = True
        tracked = client.post(
            "/track-response",
            json={"job_id": job_id, "response_data": response_data},
            headers=headers,
        )
        assert tracked.status_code == 200

    calculated = client.post(f"/experiments/{exp_id}/calculate", headers=headers)
    assert calculated.status_code == 200
    assert sum(r["total_applications"] for r in calculated.json()) == 12

    dashboard = client.get(f"/experiments/{exp_id}/dashboard", headers=headers)
    assert dashboard.status_code == 200
    body = dashboard.json()

    assert body["summary"]["total_applications"] == 12
    assert body["summary"]["total_responses"] == 4
    assert body["summary"]["overall_response_rate"] == 33.33
    assert len(body["applications"]) == 12
    assert body["winning_variant"] is not None
    assert body["report"] is None
    assert body["insights"]

    rates = [r["response_rate"] for r in body["results"]]
    assert rates == sorted(rates, reverse=True)
    for result in body["results"]:
        if result["total_responses"]:
            assert result["avg_time_to_response_hours"] == 72.0


def test_archive_variant_deletes_its_trials(client, headers):
    experiment = _create_experiment(client, headers)
    exp_id = experiment["id"]
    variant = _add_variant(client, headers, exp_id, "Only")
    _assign(client, headers, exp_id, 1)
    client.post(
        "/track-response",
        json={"job_id": 1, "response_data": {"response_type": "rejection"}},
        headers=headers,
    )

    response = client.delete(f"/variants/{variant['id']}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    detail = client.get(f"/experiments/{exp_id}", headers=headers).json()
    assert detail["variants"] == []
    assert detail["trials"] == []
    assert detail["results"] == []


def test_archive_someone_elses_variant_is_not_found(client, headers):
    experiment = _create_experiment(client, headers)
    variant = _add_variant(client, headers, experiment["id"], "Mine")

    response = client.delete(f"/variants/{variant['id']}", headers={"X-User-Id": "user-2"})

    assert response.status_code == 404


def test_dashboard_includes_report_when_asked(client, headers, monkeypatch):
    experiment = _create_experiment(client, headers)
    _add_variant(client, headers, experiment["id"], "A")
    _assign(client, headers, experiment["id"], 1)
    client.post(f"/experiments/{experiment['id']}/calculate", headers=headers)

    monkeypatch.setattr(
        service_module.ai_client,
        "generate_report",
        lambda experiment, results: {"report_text": "Keep going.", "recommendation": "keep_testing"},
    )

    body = client.get(
        f"/experiments/{experiment['id']}/dashboard?include_report=true", headers=headers
    ).json()

    assert body["report"] == {"report_text": "Keep going.", "recommendation": "keep_testing"}


def test_dashboard_survives_report_failure(client, headers, monkeypatch):
    experiment = _create_experiment(client, headers)
    _add_variant(client, headers, experiment["id"], "A")
    _assign(client, headers, experiment["id"], 1)
    client.post(f"/experiments/{experiment['id']}/calculate", headers=headers)

    def _fail(experiment, results):
        raise requests.ConnectionError("ollama is down")

    monkeypatch.setattr(service_module.ai_client, "generate_report", _fail)

    response = client.get(
        f"/experiments/{experiment['id']}/dashboard?include_report=true", headers=headers
    )

    assert response.status_code == 200
    assert response.json()["report"] is None
    assert response.json()["insights"] == [
        "Add at least 2 variants to start comparing performance."
    ]


def test_dashboard_wraps_report_that_is_not_an_object(client, headers, monkeypatch):
    experiment = _create_experiment(client, headers)
    _add_variant(client, headers, experiment["id"], "A")
    _assign(client, headers, experiment["id"], 1)
    client.post(f"/experiments/{experiment['id']}/calculate", headers=headers)

    class _ListReply:
        def raise_for_status(self):
            pass

        def json(self):
            return {"message": {"role": "assistant", "content": '["A", "is", "fine"]'}}

    monkeypatch.setattr(
        service_module.ai_client.requests, "post", lambda url, json=None, timeout=None: _ListReply()
    )

    response = client.get(
        f"/experiments/{experiment['id']}/dashboard?include_report=true", headers=headers
    )

    assert response.status_code == 200
    assert response.json()["report"] == {
        "report_text": '["A", "is", "fine"]',
        "recommendation": "keep_testing",
    }
