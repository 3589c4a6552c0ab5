import json
from typing import Optional

from aws_cdk import CfnOutput, RemovalPolicy, Stack
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_rds as rds
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct

from .buildspecs import snake_case
from .ecs_service import AutoScalingConfig, EcsService
from .pipeline import RecipesPipeline

POSTGRES_PORT = 5432


class RecipesStack(Stack):
    """
    Recipes API infrastructure.

    Creates:
    - VPC with flow logs and the endpoints ECS needs to pull images privately
    - Security group shared by the database, the bastion and the service
    - Bastion host for database access
    - Generated database credentials secret and a Postgres instance
    - ECS Fargate service (see ``EcsService``)
    - CI/CD pipeline (see ``RecipesPipeline``)
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment_name: str,
        service_name: str,
        hosted_zone_domain_name: Optional[str] = None,
        auth_issuer_url: Optional[str] = None,
        auth_audience: Optional[str] = None,
        database_username: Optional[str] = None,
        default_database_name: Optional[str] = None,
        deletion_protection: bool = False,
        instance_type: Optional[ec2.InstanceType] = None,
        max_azs: int = 2,
        removal_policy: RemovalPolicy = RemovalPolicy.DESTROY,
        with_pipeline: bool = True,
        **kwargs,
    ) -> None:
        if auth_issuer_url and not auth_audience:
            raise ValueError("auth_audience is required together with auth_issuer_url")
        super().__init__(scope, construct_id, **kwargs)

        self.id = construct_id
        self.environment_name = environment_name
        self.service_name = service_name
        self.hosted_zone_domain_name = hosted_zone_domain_name
        self.auth_issuer_url = auth_issuer_url
        self.auth_audience = auth_audience
        self.database_username = database_username or snake_case(construct_id)
        self.default_database_name = default_database_name or snake_case(construct_id)
        self.deletion_protection = deletion_protection
        self.instance_type = instance_type or ec2.InstanceType.of(
            ec2.InstanceClass.T4G, ec2.InstanceSize.MICRO
        )
        self.max_azs = max_azs
        self.removal_policy = removal_policy

        self._build_vpc()
        self._build_security_group()
        self._build_bastion_host()
        self._build_database_credentials_secret()
        self._build_database_instance()
        self._build_ecs_service()
        self.recipes_pipeline: Optional[RecipesPipeline] = None
        if with_pipeline:
            self._build_recipes_pipeline()

    def _output(self, output_id: str, value: str) -> None:
        CfnOutput(self, output_id, value=value, export_name=f"{self.id}-{output_id}")

    # ====================================================================
    # Network
    # ====================================================================

    def _build_vpc(self) -> None:
        vpc_id = f"{self.id}-vpc"
        self.vpc = ec2.Vpc(
            self,
            vpc_id,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            flow_logs={"S3Flowlogs": ec2.FlowLogOptions(destination=ec2.FlowLogDestination.to_s3())},
            max_azs=self.max_azs,
            gateway_endpoints={
                "S3": ec2.GatewayVpcEndpointOptions(service=ec2.GatewayVpcEndpointAwsService.S3)
            },
        )
        for suffix, service in (
            ("ecr-docker", ec2.InterfaceVpcEndpointAwsService.ECR_DOCKER),
            ("ecr", ec2.InterfaceVpcEndpointAwsService.ECR),
            ("logs", ec2.InterfaceVpcEndpointAwsService.CLOUDWATCH_LOGS),
            ("secrets-manager", ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER),
        ):
            self.vpc.add_interface_endpoint(f"{vpc_id}-endpoint-{suffix}", service=service)

    def _build_security_group(self) -> None:
        self.rds_db_sg = ec2.SecurityGroup(self, f"{self.id}-rds-db-sg", vpc=self.vpc)
        self.rds_db_sg.add_ingress_rule(
            self.rds_db_sg,
            ec2.Port.tcp(POSTGRES_PORT),
            "Allow connections to RDS DB from application",
        )
        self._output("output-vpc-id", self.vpc.vpc_id)

    def _build_bastion_host(self) -> None:
        bastion_host_id = f"{self.id}-bastion-host"
        self.bastion_host = ec2.BastionHostLinux(
            self,
            bastion_host_id,
            vpc=self.vpc,
            instance_name=bastion_host_id,
            subnet_selection=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            security_group=self.rds_db_sg,
        )
        self.bastion_host.allow_ssh_access_from(ec2.Peer.any_ipv4())
        self._output("output-bastion-hostname", self.bastion_host.instance_public_dns_name)
        self._output("output-bastion-id", self.bastion_host.instance_id)

    # ====================================================================
    # Database
    # ====================================================================

    def _build_database_credentials_secret(self) -> None:
        self.database_credentials_secret_name = f"{self.id}-db-secret"
        self.database_credentials_secret = secretsmanager.Secret(
            self,
            self.database_credentials_secret_name,
            secret_name=self.database_credentials_secret_name,
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({"username": self.database_username}),
                exclude_punctuation=True,
                include_space=False,
                generate_string_key="password",
            ),
        )
        self._output("db-credentials-secret-name", self.database_credentials_secret.secret_name)

    def _build_database_instance(self) -> None:
        database_instance_id = f"{self.id}-db"
        # attaching the secret adds host/port/dbname, read by the service and migrations
        self.database_instance = rds.DatabaseInstance(
            self,
            database_instance_id,
            deletion_protection=self.deletion_protection,
            removal_policy=self.removal_policy,
            database_name=self.default_database_name,
            engine=rds.DatabaseInstanceEngine.postgres(version=rds.PostgresEngineVersion.VER_16),
            instance_type=self.instance_type,
            instance_identifier=f"{database_instance_id}-id",
            credentials=rds.Credentials.from_secret(self.database_credentials_secret),
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            security_groups=[self.rds_db_sg],
            port=POSTGRES_PORT,
        )
        self._output("db-endpoint", self.database_instance.instance_endpoint.hostname)

    # ====================================================================
    # Service + CI/CD
    # ====================================================================

    def _build_ecs_service(self) -> None:
        task_environment = {
            "SERVICE_ENV": self.environment_name,
            "PORT": "8000",
            "LOG_LEVEL": "INFO",
            "DB_AUTO_CREATE": "false",
        }
        if self.auth_issuer_url:
            task_environment["AUTH_ISSUER_URL"] = self.auth_issuer_url
        if self.auth_audience:
            task_environment["AUTH_AUDIENCE"] = self.auth_audience
        secret = self.database_credentials_secret
        task_secrets = {
            "PGUSER": ecs.Secret.from_secrets_manager(secret, "username"),
            "PGPASSWORD": ecs.Secret.from_secrets_manager(secret, "password"),
            "PGDATABASE": ecs.Secret.from_secrets_manager(secret, "dbname"),
            "PGHOST": ecs.Secret.from_secrets_manager(secret, "host"),
            "PGPORT": ecs.Secret.from_secrets_manager(secret, "port"),
        }
        if not self.auth_issuer_url:
            # no identity provider: the service signs its own HS256 tokens
            self.jwt_secret = secretsmanager.Secret(
                self,
                f"{self.id}-jwt-secret",
                secret_name=f"{self.id}-jwt-secret",
                generate_secret_string=secretsmanager.SecretStringGenerator(
                    exclude_punctuation=True, password_length=48
                ),
            )
            task_secrets["JWT_SECRET"] = ecs.Secret.from_secrets_manager(self.jwt_secret)
        self.ecs_service = EcsService(
            self,
            f"{self.id}-service",
            environment_name=self.environment_name,
            service_name=self.service_name,
            hosted_zone_domain_name=self.hosted_zone_domain_name,
            security_group=self.rds_db_sg,
            task_environment=task_environment,
            task_secrets=task_secrets,
            vpc=self.vpc,
            autoscaling_config=AutoScalingConfig(),
        )

    def _build_recipes_pipeline(self) -> None:
        self.recipes_pipeline = RecipesPipeline(
            self,
            f"{self.id}-cicd",
            environment_name=self.environment_name,
            service=self.ecs_service,
            database_credentials_secret_arn=self.database_credentials_secret.secret_arn,
            security_group=self.rds_db_sg,
            vpc=self.vpc,
        )
