from app.seed import automigrate


def test_workflow(client):
    """Site の登録からテスト結果の保存・置き換え・削除までの流れ"""
    site = client.post("/api/sites", json={"url": "https://www.example.com", "name": "Example"}).json()
    form_type = client.post(
        "/api/form-types",
        json={"casperjs": "casperjs/contact-form.js", "description": "Contact form"},
    ).json()
    site_form = client.post("/api/site-forms", json={
        "formPath": "/contact",
        "url": "https://www.example.com/contact",
        "siteId": site["id"],
        "formTypeId": form_type["id"],
    }).json()

    # customData だけのテスト結果
    response = client.post("/api/site-tests", json={"siteId": site["id"], "customData": {"x": 1}})
    assert response.status_code == 200
    site_test = response.json()
    assert set(site_test) == {"id", "siteId", "createdAt", "customData"}

    response = client.get(f"/api/site-tests/{site_test['id']}")
    assert set(response.json()) == {"id", "siteId", "createdAt", "customData"}

    # 子レコードを追加し、さらに置き換える
    response = client.put(f"/api/site-tests/{site_test['id']}", json={
        "forms": [{"siteFormId": site_form["id"], "stdout": ["step 1"], "isFailed": True}],
        "ping": {"data": {"status": 500}},
    })
    assert response.status_code == 200
    assert response.json()["ping"]["data"] == {"status": 500}

    response = client.put(f"/api/site-tests/{site_test['id']}", json={
        "forms": [{"siteFormId": site_form["id"], "stdout": ["step 1", "step 2"], "isFailed": False}],
        "ping": {"data": {"status": 200}},
    })
    updated = response.json()
    assert [form["isFailed"] for form in updated["forms"]] == [False]
    assert updated["ping"]["data"] == {"status": 200}
    assert updated["customData"] == {"x": 1}

    # Site の削除はテスト結果とフォームまで及ぶ
    response = client.delete(f"/api/sites/{site['id']}")
    assert response.json() == {"count": 1}
    assert client.get("/api/site-tests/count").json() == {"count": 0}
    assert client.get("/api/site-forms/count").json() == {"count": 0}
    assert client.get("/api/form-types/count").json() == {"count": 1}
    assert client.get(f"/api/site-tests/{site_test['id']}/forms").status_code == 404


async def test_automigrate(context):
    counts = await automigrate(context)

    assert counts == {
        "Site": 1,
        "FormType": 1,
        "SiteForm": 1,
        "SiteTest": 1,
        "SiteTestForm": 1,
        "SiteTestPsi": 1,
        "SiteTestPing": 1,
    }
    site_test = (await context.service("SiteTest").find())[0]
    assert site_test["customData"] == {"test": "test string"}
    assert len(site_test["forms"]) == 1
    assert site_test["psi"]["data"] == {"score": 92}
