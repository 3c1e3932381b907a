"""Live check of AWS credentials and Bedrock access.

Skipped unless AWS credentials (or a Bedrock API key) are present in the
environment or .env. Run directly for a step-by-step report:

    python test_aws_credentials.py
"""

import asyncio
import os
import sys

import boto3
import pytest
from botocore.exceptions import ClientError
from dotenv import load_dotenv

from aiva.utils.bedrock_client import BedrockClient
from aiva.utils.config import Config
from aiva.utils.errors import ModelAPIError

# Load environment variables
load_dotenv()

HAS_CREDENTIALS = bool(
    (os.getenv("AWS_ACCESS_KEY_ID") and os.getenv("AWS_SECRET_ACCESS_KEY"))
    or os.getenv("AWS_BEARER_TOKEN_BEDROCK")
)

pytestmark = pytest.mark.skipif(not HAS_CREDENTIALS, reason="AWS credentials not configured")


def check_credentials() -> bool:
    """Walk through environment, STS and a one-line Converse call."""
    print("=" * 60)
    print("AWS Credentials Test")
    print("=" * 60)
    print()

    config = Config.load()

    print("1. Checking environment variables...")
    aws_access_key = os.getenv("AWS_ACCESS_KEY_ID")
    if os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
        print("   ℹ Using Amazon Bedrock API key (AWS_BEARER_TOKEN_BEDROCK)")
    elif not aws_access_key:
        print("   ✗ AWS_ACCESS_KEY_ID not found in .env")
        return False
    else:
        print(f"   ✓ AWS_ACCESS_KEY_ID: {aws_access_key[:8]}...")
        if aws_access_key.startswith("ASIA") and not os.getenv("AWS_SESSION_TOKEN"):
            print("   ✗ AWS_SESSION_TOKEN not found - REQUIRED for temporary credentials!")
            return False
    print(f"   ✓ AWS_REGION: {config.aws_region}")
    print()

    if aws_access_key:
        print("2. Testing AWS credentials with STS...")
        try:
            identity = boto3.client("sts", region_name=config.aws_region).get_caller_identity()
            print(f"   ✓ Account: {identity['Account']}")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            print(f"   ✗ Credentials invalid: {error_code}")
            return False
        print()

    print(f"3. Testing Converse with {config.bedrock.model_id}...")
    client = BedrockClient.from_config(config)
    try:
        reply = asyncio.run(client.complete(
            system="Reply with the single word OK.",
            prompt="ping",
            max_tokens=10,
            operation="credentials_check",
        ))
    except ModelAPIError as e:
        print(f"   ✗ Bedrock Runtime failed: {e}")
        return False
    print(f"   ✓ Model replied: {reply.strip()[:40]}")
    print()

    print("=" * 60)
    print("✓ All checks passed! Your AWS credentials are working.")
    print("=" * 60)
    return True


def test_credentials():
    """Bedrock answers a trivial prompt with the configured credentials."""
    assert check_credentials()


if __name__ == "__main__":
    success = check_credentials()
    sys.exit(0 if success else 1)
