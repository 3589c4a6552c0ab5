"""
CodeBuild project configurations used by the recipes pipeline.

Each helper returns the keyword arguments for ``codebuild.PipelineProject``.
"""

from typing import Any, Dict, List, Optional

from aws_cdk import aws_codebuild as codebuild
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_iam as iam

CDK_CLI_VERSION = "2"
PYTHON_RUNTIME = "3.12"


def pascal_case(value: str) -> str:
    """``recipes-dev-cicd-api-build`` -> ``RecipesDevCicdApiBuild``."""
    parts = value.replace("_", "-").replace(" ", "-").split("-")
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def snake_case(value: str) -> str:
    return "_".join(p.lower() for p in value.replace(" ", "-").replace("_", "-").split("-") if p)


def _plain(env: Dict[str, str]) -> Dict[str, codebuild.BuildEnvironmentVariable]:
    return {k: codebuild.BuildEnvironmentVariable(value=v) for k, v in env.items()}


def infrastructure_project_config(
    *, id: str, environment_name: str, stack_name: str, role: iam.IRole
) -> Dict[str, Any]:
    return dict(
        project_name=pascal_case(f"{id}-infrastructure-build"),
        concurrent_build_limit=1,
        description="CodeBuild project that runs cdk deploy on the recipes stack",
        environment=codebuild.BuildEnvironment(
            build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
            privileged=True,
        ),
        environment_variables=_plain({"CDK_ENV": environment_name, "CDK_DEBUG": "true"}),
        build_spec=codebuild.BuildSpec.from_object(
            {
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"python": PYTHON_RUNTIME},
                        "commands": [
                            "echo Build started at `date`",
                            f'echo Beginning infrastructure build operations for "{id}"',
                            f"npm i -g aws-cdk@{CDK_CLI_VERSION}",
                            'pip install ".[infra]"',
                        ],
                    },
                    "build": {"commands": ["cdk synth --no-color > /dev/null"]},
                    "post_build": {
                        "commands": [
                            "echo Updating the recipes CDK infrastructure stack...",
                            f"cdk deploy {stack_name} --require-approval never --no-color",
                            "echo Build completed at `date`",
                        ]
                    },
                },
            }
        ),
        role=role,
    )


def api_project_config(
    *,
    id: str,
    container_name: str,
    cluster_name: str,
    repository_name: str,
    repository_uri: str,
    source_path: str = ".",
) -> Dict[str, Any]:
    """Builds and pushes the API image, then emits imagedefinitions.json for the ECS deploy."""
    return dict(
        project_name=pascal_case(f"{id}-api-build"),
        environment=codebuild.BuildEnvironment(
            build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
            privileged=True,
        ),
        environment_variables=_plain({"CLUSTER_NAME": cluster_name, "ECR_REPO_URI": repository_uri}),
        build_spec=codebuild.BuildSpec.from_object(
            {
                "version": "0.2",
                "phases": {
                    "pre_build": {
                        "commands": [
                            "echo Build started at `date`",
                            f"cd {source_path}",
                            "export TAG=${CODEBUILD_RESOLVED_SOURCE_VERSION:0:8}",
                            f'echo Beginning build operations for "{repository_name}"',
                            "echo Logging in to AWS ECR...",
                            "aws ecr get-login-password --region $AWS_DEFAULT_REGION"
                            " | docker login --username AWS --password-stdin ${ECR_REPO_URI%%/*}",
                        ]
                    },
                    "build": {
                        "commands": [
                            "echo Building the Docker image...",
                            "echo DOCKER TAG: $TAG",
                            "docker build -t $ECR_REPO_URI:$TAG . --progress=plain",
                            "docker tag $ECR_REPO_URI:$TAG $ECR_REPO_URI:latest",
                        ]
                    },
                    "post_build": {
                        "commands": [
                            "echo Pushing the Docker image...",
                            "docker push $ECR_REPO_URI:$TAG",
                            "docker push $ECR_REPO_URI:latest",
                            'echo "Saving new imagedefinitions.json as build artifact..."',
                            f"printf '[{{\"name\": \"{container_name}\", \"imageUri\": \"%s\"}}]' $ECR_REPO_URI:$TAG"
                            " > imagedefinitions.json",
                            "cat imagedefinitions.json",
                            "echo Build completed on `date`",
                        ]
                    },
                },
                "artifacts": {
                    "files": ["imagedefinitions.json"],
                    "base-directory": source_path,
                    "discard-paths": "yes",
                },
            }
        ),
    )


def migration_project_config(
    *,
    id: str,
    environment_name: str,
    database_credentials_secret_arn: str,
    security_group: ec2.ISecurityGroup,
    vpc: ec2.IVpc,
    source_path: str = ".",
    subnet_selection: Optional[ec2.SubnetSelection] = None,
) -> Dict[str, Any]:
    """Runs ``alembic upgrade head`` from inside the VPC with the DB secret as PG* variables."""
    secret_keys: List[str] = ["username", "password", "host", "port", "dbname"]
    pg_names = {"username": "PGUSER", "password": "PGPASSWORD", "host": "PGHOST", "port": "PGPORT", "dbname": "PGDATABASE"}
    # SERVICE_ENV stays at its default: migrations never verify tokens
    env_vars: Dict[str, codebuild.BuildEnvironmentVariable] = {
        "CDK_ENV": codebuild.BuildEnvironmentVariable(value=environment_name),
    }
    for key in secret_keys:
        env_vars[pg_names[key]] = codebuild.BuildEnvironmentVariable(
            value=f"{database_credentials_secret_arn}:{key}",
            type=codebuild.BuildEnvironmentVariableType.SECRETS_MANAGER,
        )
    return dict(
        project_name=pascal_case(f"{id}-migration-build"),
        check_secrets_in_plain_text_env_variables=True,
        concurrent_build_limit=1,
        description="CodeBuild project that runs the alembic migrations on the recipes DB",
        environment=codebuild.BuildEnvironment(build_image=codebuild.LinuxBuildImage.STANDARD_7_0),
        environment_variables=env_vars,
        security_groups=[security_group],
        vpc=vpc,
        subnet_selection=subnet_selection
        or ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
        build_spec=codebuild.BuildSpec.from_object(
            {
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"python": PYTHON_RUNTIME},
                        "commands": [
                            "echo Build started at `date`",
                            f"cd {source_path}",
                            "pip install --quiet .",
                        ],
                    },
                    "build": {"commands": ["alembic upgrade head"]},
                    "post_build": {"commands": ["echo Build completed at `date`"]},
                },
            }
        ),
    )
