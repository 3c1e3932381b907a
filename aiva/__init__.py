"""AIVA: conversational travel-claim form assist backed by AWS Bedrock."""

__version__ = "0.1.0"
