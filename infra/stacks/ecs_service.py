from dataclasses import dataclass
from typing import Dict, Optional

from aws_cdk import CfnOutput
from aws_cdk import aws_certificatemanager as acm
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_ecs_patterns as ecs_patterns
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_iam as iam
from aws_cdk import aws_route53 as route53
from constructs import Construct

DEFAULT_CONTAINER_PORT = 8000


@dataclass
class AutoScalingConfig:
    max_capacity: int = 4
    min_capacity: int = 1
    cpu_target_utilization_percent: int = 50
    ram_target_utilization_percent: int = 50


class EcsService(Construct):
    """
    The API as an ALB-fronted Fargate service.

    - ECR repository the pipeline pushes to
    - ECS cluster, task role and execution policy
    - HTTPS with a DNS validated certificate when ``hosted_zone_domain_name``
      is given, plain HTTP otherwise
    - CPU/memory target tracking autoscaling
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment_name: str,
        service_name: str,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        task_environment: Dict[str, str],
        task_secrets: Dict[str, ecs.Secret],
        hosted_zone_domain_name: Optional[str] = None,
        autoscaling_config: Optional[AutoScalingConfig] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.id = construct_id
        self.environment_name = environment_name
        self.service_name = service_name
        self.vpc = vpc
        self.security_group = security_group
        self.task_environment = task_environment
        self.task_secrets = task_secrets
        self.hosted_zone_domain_name = hosted_zone_domain_name
        self.autoscaling_config = autoscaling_config or AutoScalingConfig()
        self.container_name = construct_id

        self.hosted_zone: Optional[route53.IHostedZone] = None
        self.certificate: Optional[acm.ICertificate] = None
        self.domain_name: Optional[str] = None
        if hosted_zone_domain_name:
            self.domain_name = f"{service_name}.{environment_name}.{hosted_zone_domain_name}"

        self._build_ecr_repository()
        self._build_roles()
        if self.domain_name:
            self._load_hosted_zone()
            self._create_certificate()
        self._build_cluster()
        self._build_execution_role_policy_statement()
        self._build_ecs_service()
        self._configure_service_autoscaling()

    @property
    def container_port(self) -> int:
        return int(self.task_environment.get("PORT", DEFAULT_CONTAINER_PORT))

    def _build_ecr_repository(self) -> None:
        self.ecr_repository = ecr.Repository(
            self,
            f"{self.id}-ecr-repository",
            image_scan_on_push=True,
            repository_name=f"recipes-api/{self.service_name}-{self.environment_name}",
            lifecycle_rules=[ecr.LifecycleRule(description="Remove old images", max_image_count=50)],
        )
        output_id = "ecr-repo-uri"
        CfnOutput(
            self,
            output_id,
            value=self.ecr_repository.repository_uri,
            export_name=f"{self.id}-{output_id}",
        )

    def _build_roles(self) -> None:
        self.cluster_admin_role = iam.Role(
            self, f"{self.id}-cluster-admin-role", assumed_by=iam.AccountRootPrincipal()
        )
        task_role_id = f"{self.id}-task-role"
        self.task_role = iam.Role(
            self,
            task_role_id,
            role_name=task_role_id,
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AmazonECSTaskExecutionRolePolicy"
                )
            ],
        )

    def _load_hosted_zone(self) -> None:
        self.hosted_zone = route53.HostedZone.from_lookup(
            self,
            f"{self.id}-hosted-zone",
            domain_name=self.hosted_zone_domain_name,
            private_zone=False,
        )

    def _create_certificate(self) -> None:
        self.certificate = acm.Certificate(
            self,
            f"{self.id}-certificate",
            domain_name=self.domain_name,
            validation=acm.CertificateValidation.from_dns(self.hosted_zone),
        )

    def _build_cluster(self) -> None:
        cluster_id = f"{self.id}-cluster"
        self.cluster = ecs.Cluster(self, cluster_id, vpc=self.vpc, cluster_name=cluster_id)

    def _build_execution_role_policy_statement(self) -> None:
        self.ecs_execution_role_policy = iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            resources=["*"],
            actions=[
                "ecr:GetAuthorizationToken",
                "ecr:BatchCheckLayerAvailability",
                "ecr:GetDownloadUrlForLayer",
                "ecr:BatchGetImage",
                "logs:CreateLogStream",
                "logs:PutLogEvents",
            ],
        )

    def _build_ecs_service(self) -> None:
        service_id = f"{self.id}-ecs"
        https = self.certificate is not None
        self.service = ecs_patterns.ApplicationLoadBalancedFargateService(
            self,
            service_id,
            assign_public_ip=False,
            cluster=self.cluster,
            cpu=1024,
            memory_limit_mib=2048,
            domain_name=self.domain_name,
            domain_zone=self.hosted_zone,
            certificate=self.certificate,
            circuit_breaker=ecs.DeploymentCircuitBreaker(rollback=False),
            load_balancer_name=f"{self.id}-lb"[:32],
            protocol=elbv2.ApplicationProtocol.HTTPS if https else elbv2.ApplicationProtocol.HTTP,
            redirect_http=https,
            security_groups=[self.security_group],
            service_name=service_id,
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageOptions(
                container_name=self.container_name,
                container_port=self.container_port,
                image=ecs.ContainerImage.from_ecr_repository(self.ecr_repository),
                task_role=self.task_role,
                environment=self.task_environment,
                secrets=self.task_secrets,
            ),
        )
        self.service.target_group.configure_health_check(path="/health")
        self.service.task_definition.add_to_execution_role_policy(self.ecs_execution_role_policy)

    def _configure_service_autoscaling(self) -> None:
        cfg = self.autoscaling_config
        scalable_target = self.service.service.auto_scale_task_count(
            max_capacity=cfg.max_capacity,
            min_capacity=cfg.min_capacity,
        )
        scalable_target.scale_on_cpu_utilization(
            "CpuScaling", target_utilization_percent=cfg.cpu_target_utilization_percent
        )
        scalable_target.scale_on_memory_utilization(
            "MemoryScaling", target_utilization_percent=cfg.ram_target_utilization_percent
        )
