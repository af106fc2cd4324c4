from datetime import datetime

import pytest

from app.exceptions import ModelNotFoundException, RelationException, ValidationException
from app.services.site_test import has_valid_properties


def test_has_valid_properties():
    assert has_valid_properties(None, {"siteId": "1", "customData": {}, "forms": []})
    assert not has_valid_properties(None, {"siteId": "1", "unknown": True})


async def test_create_requires_site_id(context):
    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"customData": {"test": "x"}})

    assert exc_info.value.codes == {"siteId": ["presence"]}
    assert exc_info.value.messages == {"siteId": ["Should contains a siteId"]}
    assert exc_info.value.status_code == 422


async def test_create_rejects_unknown_site(context):
    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"siteId": "missing", "customData": {"test": "x"}})

    assert exc_info.value.codes == {"siteId": ["invalid"]}
    assert exc_info.value.messages == {"siteId": ["Invalid siteId"]}


async def test_create_requires_test_properties(context, helper):
    site = await helper.create_site()

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"siteId": site.id})

    assert exc_info.value.codes == {"testProperties": ["invalid_test_properties"]}
    assert "customData" in exc_info.value.messages["testProperties"][0]
    assert await context.service("SiteTest").count() == 0


@pytest.mark.parametrize("payload", [
    {"customData": {}},
    {"forms": []},
    {"psi": {}},
])
async def test_empty_test_properties_are_rejected(context, helper, payload):
    site = await helper.create_site()

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"siteId": site.id, **payload})

    assert exc_info.value.codes == {"testProperties": ["invalid_test_properties"]}


async def test_create_rejects_unknown_properties(context, helper):
    site = await helper.create_site()

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create(
            {"siteId": site.id, "customData": {"test": "x"}, "browser": "chrome"}
        )

    assert exc_info.value.codes == {"validProperties": ["invalid_instance_properties"]}
    assert exc_info.value.messages == {"validProperties": ["Invalid SiteTest instance properties"]}


async def test_create_with_custom_data(context, helper):
    site_test = await helper.create_site_test(customData={"test": "test string"})

    assert site_test.custom_data == {"test": "test string"}
    assert isinstance(site_test.created_at, datetime)

    found = await context.service("SiteTest").find_by_id(site_test.id)
    assert found["customData"] == {"test": "test string"}
    # 空のリレーションは読み取り結果に null / [] として含まれる
    assert found["forms"] == []
    assert found["ping"] is None
    assert found["psi"] is None


async def test_create_with_nested_relations(context, helper, mock_model):
    """入れ子のリレーションは親の保存後に子モデルとして作成される"""
    site_test = await helper.create_site_test(
        forms=[mock_model("SiteTestForm"), mock_model("SiteTestForm", isFailed=True)],
        psi=mock_model("SiteTestPsi"),
        ping=mock_model("SiteTestPing"),
    )

    found = await context.service("SiteTest").find_by_id(site_test.id)
    assert len(found["forms"]) == 2
    assert all(form["siteTestId"] == site_test.id for form in found["forms"])
    assert found["psi"]["data"] == {"score": 92}
    assert found["ping"]["data"] == {"status": 200}
    assert found["customData"] is None


async def test_nested_relation_errors_propagate(context, helper):
    site = await helper.create_site()

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"siteId": site.id, "ping": {"data": None}})

    assert exc_info.value.details["context"] == "SiteTestPing"
    # 親は作成済みのまま残る
    assert await context.service("SiteTest").count() == 1


async def test_malformed_has_one_payload(context, helper):
    site = await helper.create_site()

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").create({"siteId": site.id, "ping": [{"data": {}}]})

    assert exc_info.value.codes["ping"] == ["invalid"]


async def test_create_or_update_related_replaces_children(context, helper, mock_model):
    site_test = await helper.create_site_test(ping=mock_model("SiteTestPing"))
    service = context.service("SiteTest")

    await service.create_or_update_related(site_test, "ping", {"data": {"status": 500}})

    pings = await context.service("SiteTestPing").find({"where": {"siteTestId": site_test.id}})
    assert [p["data"] for p in pings] == [{"status": 500}]


async def test_create_or_update_related_rejects_empty_data(context, helper):
    site_test = await helper.create_site_test(customData={"test": "x"})

    with pytest.raises(RelationException):
        await context.service("SiteTest").create_or_update_related(site_test, "forms", [])


async def test_create_or_update_related_rejects_non_child_relation(context, helper):
    site_test = await helper.create_site_test(customData={"test": "x"})

    with pytest.raises(RelationException) as exc_info:
        await context.service("SiteTest").create_or_update_related(site_test, "site", {"name": "x"})

    assert "BaseSiteTestModelService" in str(exc_info.value)


async def test_update_attributes_with_relations_only(context, helper, mock_model):
    """リレーションだけの更新は子レコードを置き換え、親の値は変えない"""
    site_test = await helper.create_site_test(customData={"test": "x"}, forms=[mock_model("SiteTestForm")])
    service = context.service("SiteTest")

    result = await service.update_attributes(site_test.id, {
        "forms": [mock_model("SiteTestForm", stdout=["retry"]), mock_model("SiteTestForm", stdout=["done"])],
        "psi": mock_model("SiteTestPsi"),
    })

    assert result.id == site_test.id
    assert result.custom_data == {"test": "x"}
    found = await service.find_by_id(site_test.id)
    assert sorted(form["stdout"][0] for form in found["forms"]) == ["done", "retry"]
    assert found["psi"]["data"] == {"score": 92}


async def test_update_attributes_with_empty_patch(context, helper):
    site_test = await helper.create_site_test(customData={"test": "x"})

    with pytest.raises(ValidationException) as exc_info:
        await context.service("SiteTest").update_attributes(site_test.id, {})

    assert exc_info.value.codes == {"testProperties": ["invalid_test_properties"]}
    assert exc_info.value.messages == {
        "testProperties": ["Cannot update attribute(s). Should provide valid test properties."]
    }


async def test_update_attributes_unknown_instance(context):
    with pytest.raises(ModelNotFoundException):
        await context.service("SiteTest").update_attributes("missing", {"customData": {"a": 1}})


async def test_update_custom_data(context, helper):
    site_test = await helper.create_site_test(customData={"test": "x"})

    result = await context.service("SiteTest").update_attributes(site_test.id, {"customData": {"test": "y"}})

    assert result.custom_data == {"test": "y"}
    assert result.created_at == site_test.created_at


async def test_update_keeps_existing_children_valid(context, helper, mock_model):
    """保存済みの子レコードがあれば customData を持たない更新も通る"""
    site_test = await helper.create_site_test(ping=mock_model("SiteTestPing"))
    other_site = await helper.create_site(name="Other")

    result = await context.service("SiteTest").update_attributes(site_test.id, {"siteId": other_site.id})

    assert result.site_id == other_site.id


async def test_delete_site_test_cascades_to_children(context, helper, mock_model):
    site_test = await helper.create_site_test(
        forms=[mock_model("SiteTestForm")],
        psi=mock_model("SiteTestPsi"),
        ping=mock_model("SiteTestPing"),
    )

    assert await context.service("SiteTest").delete_by_id(site_test.id) == 1

    for name in ["SiteTestForm", "SiteTestPsi", "SiteTestPing"]:
        assert await context.service(name).count() == 0


async def test_delete_site_cascades_through_site_tests(context, helper, mock_model):
    """Site の削除は SiteTest とその子レコード、SiteForm まで及ぶ"""
    site_form = await helper.create_site_form()
    site_test = await context.service("SiteTest").create({
        "siteId": site_form.site_id,
        "forms": [mock_model("SiteTestForm", siteFormId=site_form.id)],
    })
    site_test_id = site_test.id

    await context.service("Site").delete_by_id(site_form.site_id)

    assert await context.service("SiteTest").exists(site_test_id) is False
    assert await context.service("SiteTestForm").count() == 0
    assert await context.service("SiteForm").count() == 0
    # FormType は Site に依存しない
    assert await context.service("FormType").count() == 1
