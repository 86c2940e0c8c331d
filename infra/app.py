#!/usr/bin/env python3
import os
import aws_cdk as cdk
from stacks.notion_proxy_stack import NotionProxyStack

app = cdk.App()

env = cdk.Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=app.node.try_get_context("region") or os.getenv("CDK_DEFAULT_REGION", "us-east-1"),
)

NotionProxyStack(app, app.node.try_get_context("stackName") or "FretboardNotionProxy", env=env)

app.synth()
