import shutil
import sys
from pathlib import Path

import pytest

cdk = pytest.importorskip("aws_cdk")
if shutil.which("node") is None:
    pytest.skip("CDK synthesis needs node", allow_module_level=True)

from aws_cdk.assertions import Match, Template

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT / "infra") not in sys.path:
    sys.path.insert(0, str(ROOT / "infra"))

from stacks.buildspecs import pascal_case, snake_case  # noqa: E402
from stacks.recipes_stack import RecipesStack  # noqa: E402


@pytest.fixture(scope="module")
def template():
    app = cdk.App()
    stack = RecipesStack(
        app,
        "recipes-test",
        environment_name="test",
        service_name="recipes",
        default_database_name="testdb",
        auth_issuer_url="https://tenant.example.com/",
        auth_audience="recipes",
    )
    return Template.from_stack(stack)


def test_case_helpers():
    assert pascal_case("build-api-action") == "BuildApiAction"
    assert snake_case("recipes-test") == "recipes_test"


def test_core_resources(template):
    template.resource_count_is("AWS::RDS::DBInstance", 1)
    template.resource_count_is("AWS::ECS::Service", 1)
    template.resource_count_is("AWS::ECR::Repository", 1)
    template.resource_count_is("AWS::CodePipeline::Pipeline", 1)
    template.resource_count_is("AWS::CodeBuild::Project", 3)


def test_database_is_private_postgres(template):
    template.has_resource_properties(
        "AWS::RDS::DBInstance",
        {
            "Engine": "postgres",
            "DBName": "testdb",
            "PubliclyAccessible": False,
        },
    )


def test_task_gets_auth_settings_and_db_secrets(template):
    template.has_resource_properties(
        "AWS::ECS::TaskDefinition",
        {
            "ContainerDefinitions": Match.array_with([
                Match.object_like({
                    "Environment": Match.array_with([
                        {"Name": "DB_AUTO_CREATE", "Value": "false"},
                        {"Name": "AUTH_ISSUER_URL", "Value": "https://tenant.example.com/"},
                    ]),
                    "Secrets": Match.array_with([
                        Match.object_like({"Name": "PGPASSWORD"}),
                        Match.object_like({"Name": "PGHOST"}),
                    ]),
                })
            ])
        },
    )


def test_health_check_path(template):
    template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::TargetGroup",
        {"HealthCheckPath": "/health"},
    )


def test_pipeline_stages(template):
    pipelines = template.find_resources("AWS::CodePipeline::Pipeline")
    (pipeline,) = pipelines.values()
    stages = [s["Name"] for s in pipeline["Properties"]["Stages"]]
    assert stages == ["CheckoutSource", "DeployInfrastructure", "BuildAPI", "DeployAPI"]


def test_identity_provider_secret_only(template):
    # the database credentials; no JWT signing secret when an issuer is configured
    template.resource_count_is("AWS::SecretsManager::Secret", 1)


def test_dev_tokens_get_a_generated_secret():
    app = cdk.App()
    stack = RecipesStack(app, "recipes-sandbox", environment_name="sandbox", service_name="recipes", with_pipeline=False)
    template = Template.from_stack(stack)
    template.resource_count_is("AWS::SecretsManager::Secret", 2)
    template.resource_count_is("AWS::CodePipeline::Pipeline", 0)
    template.has_resource_properties(
        "AWS::ECS::TaskDefinition",
        {
            "ContainerDefinitions": Match.array_with([
                Match.object_like({"Secrets": Match.array_with([Match.object_like({"Name": "JWT_SECRET"})])})
            ])
        },
    )


def test_issuer_without_audience_is_refused():
    with pytest.raises(ValueError):
        RecipesStack(cdk.App(), "recipes-bad", environment_name="test", service_name="recipes",
                     auth_issuer_url="https://tenant.example.com/", with_pipeline=False)
