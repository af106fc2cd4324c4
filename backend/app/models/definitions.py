"""
ドメインモデルの登録

各モデルのリレーション、バリデータ、公開するリモートメソッドをここで宣言する。
"""
from app.schemas.site import SiteInput, FormTypeInput, SiteFormInput
from app.schemas.site_test import SiteTestInput, SiteTestFormInput, SiteTestResultInput
from app.services.registry import ModelDefinition, ModelRegistry
from app.services.relations import belongs_to, has_many, has_one
from app.services.site_test import SiteTestService, site_test_validators
from app.services.site_test_child import site_test_child_definition
from app.services.validation import PresenceValidator, ReferenceValidator
from .site import Site, FormType, SiteForm
from .site_test import SiteTest, SiteTestForm, SiteTestPsi, SiteTestPing


def build_registry() -> ModelRegistry:
    """全モデルを登録し、リレーショングラフを構築したレジストリを返す"""
    registry = ModelRegistry()

    registry.register(ModelDefinition(
        name="Site",
        plural="sites",
        table=Site,
        schema=SiteInput,
        relations=[has_many("siteTests", "SiteTest", "siteId")],
        validators=[PresenceValidator("url"), PresenceValidator("name")],
    ))

    registry.register(ModelDefinition(
        name="FormType",
        plural="form-types",
        table=FormType,
        schema=FormTypeInput,
        relations=[has_many("siteForms", "SiteForm", "formTypeId")],
        validators=[PresenceValidator("casperjs"), PresenceValidator("description")],
    ))

    registry.register(ModelDefinition(
        name="SiteForm",
        plural="site-forms",
        table=SiteForm,
        schema=SiteFormInput,
        relations=[
            belongs_to("site", "Site", "siteId"),
            belongs_to("formType", "FormType", "formTypeId"),
        ],
        validators=[
            PresenceValidator("formPath"),
            PresenceValidator("url"),
            ReferenceValidator("siteId", "Site"),
            ReferenceValidator("formTypeId", "FormType"),
        ],
    ))

    site_test = registry.register(ModelDefinition(
        name="SiteTest",
        plural="site-tests",
        table=SiteTest,
        schema=SiteTestInput,
        relations=[
            belongs_to("site", "Site", "siteId"),
            has_many("forms", "SiteTestForm", "siteTestId"),
            has_one("ping", "SiteTestPing", "siteTestId"),
            has_one("psi", "SiteTestPsi", "siteTestId"),
        ],
        validators=site_test_validators(),
        service_class=SiteTestService,
    ))
    site_test.disable_remote_methods(["update", "updateById", "upsert", "upsertById"])
    site_test.disable_related_remote_methods({
        relation_id: ["update", "updateById", "delete", "deleteById", "destroy", "destroyById"]
        for relation_id in ("forms", "psi", "ping")
    })

    registry.register(site_test_child_definition(
        name="SiteTestForm",
        plural="site-test-forms",
        table=SiteTestForm,
        schema=SiteTestFormInput,
        relations=[belongs_to("siteForm", "SiteForm", "siteFormId")],
        validators=[
            PresenceValidator("stdout"),
            PresenceValidator("isFailed"),
            ReferenceValidator("siteFormId", "SiteForm"),
        ],
    ))
    registry.register(site_test_child_definition(
        name="SiteTestPsi",
        plural="site-test-psis",
        table=SiteTestPsi,
        schema=SiteTestResultInput,
        validators=[PresenceValidator("data")],
    ))
    registry.register(site_test_child_definition(
        name="SiteTestPing",
        plural="site-test-pings",
        table=SiteTestPing,
        schema=SiteTestResultInput,
        validators=[PresenceValidator("data")],
    ))

    registry.freeze()
    return registry
