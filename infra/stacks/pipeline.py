from typing import Dict

from aws_cdk import SecretValue, Stack
from aws_cdk import aws_codebuild as codebuild
from aws_cdk import aws_codepipeline as codepipeline
from aws_cdk import aws_codepipeline_actions as actions
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_iam as iam
from constructs import Construct

from .buildspecs import (
    api_project_config,
    infrastructure_project_config,
    migration_project_config,
    pascal_case,
)
from .ecs_service import EcsService


class RecipesPipeline(Construct):
    """
    CheckoutSource -> DeployInfrastructure -> BuildAPI -> DeployAPI (+ migrations).
    """

    GITHUB_TOKEN_SECRET_NAME = "github-token"
    REPO_NAME = "recipes-api"
    REPO_OWNER = "djheru"
    ENVIRONMENT_BRANCH_MAPPING: Dict[str, str] = {
        "dev": "dev",
        "test": "test",
        "prod": "main",
    }

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment_name: str,
        service: EcsService,
        database_credentials_secret_arn: str,
        security_group: ec2.ISecurityGroup,
        vpc: ec2.IVpc,
    ) -> None:
        super().__init__(scope, construct_id)

        self.id = construct_id
        self.environment_name = environment_name
        self.ecs_service = service
        self.database_credentials_secret_arn = database_credentials_secret_arn
        self.security_group = security_group
        self.vpc = vpc

        self.source_artifact = codepipeline.Artifact()
        self.build_artifact = codepipeline.Artifact()

        self._build_source_action()
        self._build_infrastructure_role()
        self._build_infrastructure_action()
        self._build_api_action()
        self._build_migration_action()
        self._build_deploy_api_action()
        self._build_pipeline()

    @property
    def branch(self) -> str:
        return self.ENVIRONMENT_BRANCH_MAPPING.get(self.environment_name, self.environment_name)

    def _build_source_action(self) -> None:
        self.source_action = actions.GitHubSourceAction(
            action_name=pascal_case("source-action"),
            owner=self.REPO_OWNER,
            repo=self.REPO_NAME,
            branch=self.branch,
            oauth_token=SecretValue.secrets_manager(self.GITHUB_TOKEN_SECRET_NAME),
            output=self.source_artifact,
        )

    def _build_infrastructure_role(self) -> None:
        role_id = f"{self.id}-infrastructure-role"
        self.infrastructure_role = iam.Role(
            self,
            role_id,
            assumed_by=iam.ServicePrincipal("codebuild.amazonaws.com"),
            managed_policies=[iam.ManagedPolicy.from_aws_managed_policy_name("AdministratorAccess")],
            role_name=role_id,
        )

    def _build_infrastructure_action(self) -> None:
        config = infrastructure_project_config(
            id=self.id,
            environment_name=self.environment_name,
            stack_name=Stack.of(self).stack_name,
            role=self.infrastructure_role,
        )
        project = codebuild.PipelineProject(self, f"{self.id}-infrastructure-project", **config)
        self.infrastructure_action = actions.CodeBuildAction(
            action_name=pascal_case("infrastructure-action"),
            input=self.source_artifact,
            project=project,
        )

    def _build_api_action(self) -> None:
        repository = self.ecs_service.ecr_repository
        cluster = self.ecs_service.cluster
        config = api_project_config(
            id=self.id,
            container_name=self.ecs_service.container_name,
            cluster_name=cluster.cluster_name,
            repository_name=repository.repository_name,
            repository_uri=repository.repository_uri,
        )
        project = codebuild.PipelineProject(self, f"{self.id}-build-api-project", **config)
        repository.grant_pull_push(project)
        project.add_to_role_policy(
            iam.PolicyStatement(
                actions=[
                    "ecs:DescribeCluster",
                    "ecr:GetAuthorizationToken",
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:BatchGetImage",
                    "ecr:GetDownloadUrlForLayer",
                ],
                resources=[cluster.cluster_arn],
            )
        )
        self.api_action = actions.CodeBuildAction(
            action_name=pascal_case("build-api-action"),
            input=self.source_artifact,
            project=project,
            outputs=[self.build_artifact],
        )

    def _build_migration_action(self) -> None:
        config = migration_project_config(
            id=self.id,
            environment_name=self.environment_name,
            database_credentials_secret_arn=self.database_credentials_secret_arn,
            security_group=self.security_group,
            vpc=self.vpc,
        )
        project = codebuild.PipelineProject(self, f"{self.id}-migration-project", **config)
        self.migration_action = actions.CodeBuildAction(
            action_name=pascal_case("run-migrations-action"),
            input=self.source_artifact,
            project=project,
        )

    def _build_deploy_api_action(self) -> None:
        self.deploy_api_action = actions.EcsDeployAction(
            action_name=pascal_case("deploy-api-action"),
            service=self.ecs_service.service.service,
            image_file=self.build_artifact.at_path("imagedefinitions.json"),
        )

    def _build_pipeline(self) -> None:
        self.pipeline = codepipeline.Pipeline(
            self,
            f"{self.id}-pipeline",
            pipeline_name=self.id,
            restart_execution_on_update=True,
            stages=[
                codepipeline.StageProps(stage_name="CheckoutSource", actions=[self.source_action]),
                codepipeline.StageProps(stage_name="DeployInfrastructure", actions=[self.infrastructure_action]),
                codepipeline.StageProps(stage_name="BuildAPI", actions=[self.api_action]),
                codepipeline.StageProps(
                    stage_name="DeployAPI", actions=[self.deploy_api_action, self.migration_action]
                ),
            ],
        )
