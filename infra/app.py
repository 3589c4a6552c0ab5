#!/usr/bin/env python3
"""
CDK app entry point.

Deploy (the environment name comes from $CDK_ENV, default "dev"):
    CDK_ENV=dev cdk deploy recipes-dev

A custom environment (e.g. a developer sandbox) only needs a different
$CDK_ENV value; its branch defaults to the environment name.
"""

import os

import aws_cdk as cdk

from stacks.buildspecs import snake_case
from stacks.recipes_stack import RecipesStack

environment_name = os.environ.get("CDK_ENV", "dev")
account = os.environ.get("CDK_DEFAULT_ACCOUNT") or os.environ.get("AWS_DEFAULT_ACCOUNT_ID")
region = os.environ.get("CDK_DEFAULT_REGION") or os.environ.get("AWS_DEFAULT_REGION")

app = cdk.App()

service_name = "recipes"
stack_id = f"{service_name}-{environment_name}"

recipes_stack = RecipesStack(
    app,
    stack_id,
    description=(
        "Summary: resources for the recipes API (VPC, Postgres, ECS Fargate, CI/CD). "
        f"Deployment: set $CDK_ENV to the target environment (currently {environment_name})."
    ),
    env=cdk.Environment(account=account, region=region),
    environment_name=environment_name,
    service_name=service_name,
    default_database_name=snake_case(service_name),
    hosted_zone_domain_name=app.node.try_get_context("hosted_zone_domain_name") or "online-cuisine.com",
    auth_issuer_url=app.node.try_get_context("auth_issuer_url") or os.environ.get("AUTH_ISSUER_URL"),
    auth_audience=app.node.try_get_context("auth_audience") or os.environ.get("AUTH_AUDIENCE"),
)

cdk.Tags.of(recipes_stack).add("application", "recipes-api")
cdk.Tags.of(recipes_stack).add("stack", service_name)
cdk.Tags.of(recipes_stack).add("environmentName", environment_name)

app.synth()
