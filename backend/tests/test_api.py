API = "/api/v1"


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert res.json()["billing_records"] == 1


# ── Auth ─────────────────────────────────────────────────────

def test_login_returns_tokens_and_profile(client):
    res = client.post(f"{API}/auth/login", json={"username": "kasir1", "password": "kasir123"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["name"] == "Kasir Satu"


def test_wrong_password_is_401(client):
    res = client.post(f"{API}/auth/login", json={"username": "kasir1", "password": "salah-sekali"})
    assert res.status_code == 401


def test_requests_without_token_are_rejected(client):
    assert client.get(f"{API}/students").status_code in (401, 403)


def test_admin_menu_includes_master_data(client, admin_headers):
    res = client.get(f"{API}/auth/me", headers=admin_headers)
    assert res.status_code == 200
    keys = [entry["key"] for entry in res.json()["data"]["menu"]]
    assert keys == [
        "dashboard", "classes", "billing", "students", "payments", "reports",
        "academic-years", "institutions", "settings",
    ]


def test_cashier_menu_is_day_to_day_only(client, cashier_headers):
    res = client.get(f"{API}/auth/me", headers=cashier_headers)
    keys = [entry["key"] for entry in res.json()["data"]["menu"]]
    assert "institutions" not in keys
    assert "academic-years" not in keys
    assert "payments" in keys and "billing" in keys


def test_refresh_issues_a_new_access_token(client):
    login = client.post(f"{API}/auth/login", json={"username": "admin", "password": "admin123"})
    refresh_token = login.json()["data"]["refresh_token"]

    res = client.post(f"{API}/auth/refresh", json={"refresh_token": refresh_token})
    assert res.status_code == 200
    token = res.json()["data"]["access_token"]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["username"] == "admin"


def test_login_is_rate_limited_per_username(client):
    for _ in range(10):
        res = client.post(f"{API}/auth/login", json={"username": "kasir2", "password": "bukan-ini"})
        assert res.status_code == 401
    res = client.post(f"{API}/auth/login", json={"username": "kasir2", "password": "kasir123"})
    assert res.status_code == 429


# ── Roles ────────────────────────────────────────────────────

def test_cashier_cannot_manage_institutions(client, cashier_headers):
    assert client.get(f"{API}/institutions", headers=cashier_headers).status_code == 403


def test_admin_lists_institutions_with_class_counts(client, admin_headers):
    res = client.get(f"{API}/institutions", headers=admin_headers)
    assert res.status_code == 200
    by_code = {i["code"]: i for i in res.json()["data"]}
    assert by_code["SMAN1JKT"]["class_count"] == 3
    assert by_code["SMAN2JKT"]["class_count"] == 0


def test_cashier_can_read_the_current_year(client, cashier_headers):
    res = client.get(f"{API}/academic-years/current", headers=cashier_headers)
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "2024/2025"
    assert client.get(f"{API}/academic-years", headers=cashier_headers).status_code == 403


def test_admin_creates_an_academic_year(client, admin_headers):
    res = client.post(f"{API}/academic-years", headers=admin_headers, json={
        "name": "2025/2026", "start_date": "2025-07-01", "end_date": "2026-06-30",
    })
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["name"] == "2025/2026"
    assert data["status"] == "upcoming"
    assert data["label"] == "Tahun Ajaran 2025/2026"

    again = client.post(f"{API}/academic-years", headers=admin_headers, json={
        "name": "2025/2026", "start_date": "2025-07-01", "end_date": "2026-06-30",
    })
    assert again.status_code == 409
    assert again.json()["error"] == "Conflict"


def test_admin_renames_an_academic_year(client, admin_headers):
    created = client.post(f"{API}/academic-years", headers=admin_headers, json={
        "name": "2025/2026", "start_date": "2025-07-01", "end_date": "2026-06-30",
    }).json()["data"]

    res = client.put(
        f"{API}/academic-years/{created['id']}", headers=admin_headers,
        json={"name": "2025/2026 Genap"},
    )
    assert res.status_code == 200, res.text
    assert res.json()["data"]["name"] == "2025/2026 Genap"

    taken = client.put(
        f"{API}/academic-years/{created['id']}", headers=admin_headers,
        json={"name": "2024/2025"},
    )
    assert taken.status_code == 409


# ── Students ─────────────────────────────────────────────────

def test_students_are_paginated(client, cashier_headers):
    res = client.get(f"{API}/students", params={"page_size": 2}, headers=cashier_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert len(body["data"]) == 2


def test_duplicate_nis_is_409(client, admin_headers, demo):
    _, ids = demo
    res = client.post(f"{API}/students", headers=admin_headers, json={
        "nis": "2021001", "name": "Ahmad Kedua", "institution_id": ids["institution_id"],
    })
    assert res.status_code == 409
    assert res.json()["error"] == "Conflict"


# ── Billing & payments ───────────────────────────────────────

def test_cashier_records_a_payment(client, cashier_headers, demo):
    _, ids = demo
    ahmad = ids["student_ids"]["2021001"]

    res = client.post(
        f"{API}/billing/{ahmad}/payments",
        json={"amount": 500000, "method": "transfer", "notes": "SPP Agustus"},
        headers=cashier_headers,
    )
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["payment"]["processed_by"] == "Kasir Satu"
    assert data["payment"]["receipt_number"].startswith("RCP/")
    assert data["payment"]["amount_formatted"] == "Rp 500.000"
    assert data["billing"]["paid_amount"] == 900000
    assert data["billing"]["outstanding_amount"] == 6700000

    history = client.get(f"{API}/billing/{ahmad}/payments", headers=cashier_headers).json()["data"]
    assert [p["amount"] for p in history][0] == 500000
    assert len(history) == 2


def test_overpayment_is_409_and_changes_nothing(client, cashier_headers, demo):
    _, ids = demo
    ahmad = ids["student_ids"]["2021001"]

    res = client.post(f"{API}/billing/{ahmad}/payments", json={"amount": 7200001}, headers=cashier_headers)
    assert res.status_code == 409
    assert res.json()["error"] == "OverpaymentRejected"
    assert res.json()["success"] is False

    record = client.get(f"{API}/billing/{ahmad}", headers=cashier_headers).json()["data"]
    assert record["outstanding_amount"] == 7200000
    assert record["paid_amount"] == 400000


def test_zero_amount_is_invalid_amount(client, cashier_headers, demo):
    _, ids = demo
    ahmad = ids["student_ids"]["2021001"]
    res = client.post(f"{API}/billing/{ahmad}/payments", json={"amount": 0}, headers=cashier_headers)
    assert res.status_code == 422
    assert res.json()["error"] == "InvalidAmount"


def test_non_numeric_amount_is_validation_error(client, cashier_headers, demo):
    _, ids = demo
    ahmad = ids["student_ids"]["2021001"]
    res = client.post(f"{API}/billing/{ahmad}/payments", json={"amount": "banyak"}, headers=cashier_headers)
    assert res.status_code == 422
    assert res.json()["error"] == "ValidationError"


def test_unknown_student_is_404(client, cashier_headers):
    res = client.get(f"{API}/billing/no-such-student", headers=cashier_headers)
    assert res.status_code == 404
    assert res.json()["error"] == "NotFound"


def test_unbilled_student_is_404(client, cashier_headers, demo):
    _, ids = demo
    siti = ids["student_ids"]["2021002"]
    res = client.post(f"{API}/billing/{siti}/payments", json={"amount": 100000}, headers=cashier_headers)
    assert res.status_code == 404


def test_discount_endpoint(client, admin_headers, demo):
    _, ids = demo
    ahmad = ids["student_ids"]["2021001"]
    res = client.post(
        f"{API}/billing/{ahmad}/discount",
        json={"amount": 200000, "reason": "Keringanan saudara kandung"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["discount_amount"] == 200000
    assert res.json()["data"]["outstanding_amount"] == 7000000


def test_applying_a_structure_twice_skips_billed_students(client, admin_headers, demo):
    _, ids = demo
    res = client.post(f"{API}/fee-structures/{ids['fee_structure_id']}/apply", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["created_count"] == 0
    assert res.json()["data"]["skipped_count"] == 1


# ── Reports ──────────────────────────────────────────────────

def test_institution_report(client, cashier_headers, demo):
    _, ids = demo
    res = client.get(f"{API}/reports/institution/{ids['institution_id']}", headers=cashier_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["institution_name"] == "SMA Negeri 1 Jakarta"
    assert data["total_fees"] == 7600000
    assert data["total_collected"] == 400000
    assert round(data["collection_rate"], 2) == 5.26


def test_defaulters_report_lists_the_late_student(client, cashier_headers, demo):
    _, ids = demo
    res = client.get(f"{API}/reports/defaulters", headers=cashier_headers)
    assert res.status_code == 200
    items = res.json()["data"]
    # the 2024/2025 due dates are long past
    assert [i["nis"] for i in items] == ["2021001"]
    assert items[0]["status"] in ("overdue", "defaulter")


def test_daily_report_for_the_seeded_payment(client, cashier_headers):
    res = client.get(f"{API}/reports/daily", params={"day": "2024-07-15"}, headers=cashier_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["payments_today"] == 400000
    assert data["payment_count"] == 1
    assert data["date_display"] == "Senin, 15 Juli 2024"


def test_export_is_not_implemented(client, cashier_headers):
    res = client.get(f"{API}/reports/export", headers=cashier_headers)
    assert res.status_code == 501
    assert res.json()["error"] == "NotImplemented"
