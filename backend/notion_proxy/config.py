"""
Environment configuration for the Notion proxy handlers.

Settings are read from the process environment on every invocation. The
Notion token may be given directly (NOTION_TOKEN) or resolved from Secrets
Manager (NOTION_TOKEN_SECRET_ARN), which is how the CDK stack deploys it.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .helpers import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_STATUS = "On The Bench"

# Logical collection -> environment variable
DATABASE_ENV = {
    "projects": "NOTION_DATABASE_ID",
    "milestones": "NOTION_MILESTONES_DATABASE_ID",
    "parts": "NOTION_PARTS_DATABASE_ID",
    "workflows": "NOTION_WORKFLOWS_DATABASE_ID",
    "inbox": "NOTION_INBOX_DATABASE_ID",
}


@dataclass(frozen=True)
class Settings:
    token: str
    databases: Dict[str, str]
    default_status: str = DEFAULT_PROJECT_STATUS
    timezone: str = "UTC"

    def database(self, key: str) -> Optional[str]:
        return self.databases.get(key) or None

    def require(self, *keys: str) -> None:
        """Raise ConfigError naming every missing variable (token first)."""
        missing = []
        if not self.token:
            missing.append("NOTION_TOKEN")
        for key in keys:
            if not self.database(key):
                missing.append(DATABASE_ENV[key])
        if missing:
            raise ConfigError(missing)


def _secret_token(secret_arn: str) -> str:
    """Fetch the token from Secrets Manager; plain string or {"token": ...}."""
    client = boto3.session.Session().client("secretsmanager")
    try:
        response = client.get_secret_value(SecretId=secret_arn)
    except (BotoCoreError, ClientError) as e:
        logger.error("%s:_secret_token - Failed to fetch Notion token: %s", __name__, e)
        return ""
    raw = (response.get("SecretString") or "").strip()
    if raw.startswith("{"):
        try:
            return str(json.loads(raw).get("token") or "")
        except ValueError:
            logger.error("%s:_secret_token - Secret is not valid JSON", __name__)
            return ""
    return raw


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    token = (env.get("NOTION_TOKEN") or "").strip()
    secret_arn = (env.get("NOTION_TOKEN_SECRET_ARN") or "").strip()
    if not token and secret_arn:
        token = _secret_token(secret_arn)
        if token:
            logger.info("%s:load_settings - Notion token loaded from Secrets Manager", __name__)
    databases = {key: (env.get(var) or "").strip() for key, var in DATABASE_ENV.items()}
    return Settings(
        token=token,
        databases=databases,
        default_status=(env.get("DEFAULT_PROJECT_STATUS") or DEFAULT_PROJECT_STATUS).strip(),
        timezone=(env.get("SHOP_TIMEZONE") or "UTC").strip(),
    )
