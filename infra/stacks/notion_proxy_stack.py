# infra/stacks/notion_proxy_stack.py

from pathlib import Path

from aws_cdk import (
    Stack,
    Duration,
    BundlingOptions,
    CfnOutput,
    aws_lambda as _lambda,
    aws_apigateway as apigw,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

BACKEND_DIR = Path(__file__).resolve().parents[2] / "backend"

# CDK context key -> Lambda environment variable
DATABASE_CONTEXT = {
    "projectsDatabaseId": "NOTION_DATABASE_ID",
    "milestonesDatabaseId": "NOTION_MILESTONES_DATABASE_ID",
    "partsDatabaseId": "NOTION_PARTS_DATABASE_ID",
    "workflowsDatabaseId": "NOTION_WORKFLOWS_DATABASE_ID",
    "inboxDatabaseId": "NOTION_INBOX_DATABASE_ID",
}


class NotionProxyStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # =========
        # Context
        # =========
        stack_name_ctx = self.node.try_get_context("stackName") or "FretboardNotionProxy"
        default_status_ctx = self.node.try_get_context("defaultProjectStatus") or "On The Bench"
        shop_timezone_ctx = self.node.try_get_context("shopTimezone") or "UTC"
        log_level_ctx = self.node.try_get_context("logLevel") or "INFO"

        database_env = {
            env_var: self.node.try_get_context(ctx_key) or ""
            for ctx_key, env_var in DATABASE_CONTEXT.items()
        }

        # ==============
        # Notion secret
        # ==============
        # Value is set out of band: aws secretsmanager put-secret-value --secret-string <token>
        token_secret = secretsmanager.Secret(
            self,
            "NotionTokenSecret",
            description="Notion integration token for the work tracker proxy",
        )

        # =============
        # Lambda (API)
        # =============
        code = _lambda.Code.from_asset(
            str(BACKEND_DIR),
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                command=[
                    "bash", "-c",
                    "pip install -r requirements.txt -t /asset-output && cp -au notion_proxy /asset-output/",
                ],
            ),
        )
        environment = {
            **database_env,
            "NOTION_TOKEN_SECRET_ARN": token_secret.secret_arn,
            "DEFAULT_PROJECT_STATUS": default_status_ctx,
            "SHOP_TIMEZONE": shop_timezone_ctx,
            "LOG_LEVEL": log_level_ctx,
        }

        proxy_lambda = _lambda.Function(
            self,
            "ProxyLambda",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="notion_proxy.app.handler",
            code=code,
            memory_size=256,
            timeout=Duration.seconds(29),  # API Gateway integration limit
            environment=environment,
        )
        inbox_lambda = _lambda.Function(
            self,
            "InboxLambda",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="notion_proxy.inbox.handler",
            code=code,
            memory_size=128,
            timeout=Duration.seconds(10),
            environment=environment,
        )
        token_secret.grant_read(proxy_lambda)
        token_secret.grant_read(inbox_lambda)

        # ============
        # API Gateway
        # ============
        api = apigw.LambdaRestApi(
            self,
            "Api",
            handler=proxy_lambda,
            proxy=True,
            deploy_options=apigw.StageOptions(
                stage_name="prod",
                throttling_rate_limit=20,
                throttling_burst_limit=40,
            ),
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=apigw.Cors.ALL_ORIGINS,
                allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
            ),
        )

        inbox = api.root.add_resource("inbox")
        inbox.add_method("POST", apigw.LambdaIntegration(inbox_lambda))

        # =======
        # Outputs
        # =======
        CfnOutput(self, "StackName", value=stack_name_ctx)
        CfnOutput(self, "ApiUrl", value=api.url)
        CfnOutput(self, "InboxUrl", value=f"{api.url}inbox")
        CfnOutput(self, "NotionTokenSecretArn", value=token_secret.secret_arn)
