"""Configuration management for AIVA form assist."""

import os
import yaml
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class BedrockConfig:
    """AWS Bedrock configuration."""
    model_id: str
    vision_model_id: str
    timeout: int
    max_retries: int


@dataclass
class StorageConfig:
    """Storage paths configuration."""
    uploads_dir: str
    records_dir: str
    history_path: str


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    format: str
    file: str


@dataclass
class FormAssistConfig:
    """Conversation and extraction settings."""
    call_timeout_seconds: float = 30.0
    max_document_chars: int = 15000
    max_pdf_pages: int = 5
    validate_guided_answers: bool = False
    default_target_language: str = "English"
    field_aliases: Dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Main configuration class."""
    aws_region: str
    bedrock: BedrockConfig
    storage: StorageConfig
    logging: LoggingConfig
    form_assist: FormAssistConfig

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - AWS_REGION
        - BEDROCK_MODEL_ID
        - AIVA_CALL_TIMEOUT
        - AIVA_UPLOADS_DIR
        - LOG_LEVEL

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings
        """
        config_path = os.getenv("AIVA_CONFIG", config_path)
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        aws_data = config_data.get("aws", {})
        aws_region = os.getenv("AWS_REGION", aws_data.get("region", "us-east-1"))

        bedrock_data = aws_data.get("bedrock", {})
        model_id = os.getenv("BEDROCK_MODEL_ID", bedrock_data.get("model_id", "amazon.nova-pro-v1:0"))
        bedrock_config = BedrockConfig(
            model_id=model_id,
            vision_model_id=bedrock_data.get("vision_model_id") or model_id,
            timeout=int(bedrock_data.get("timeout", 60)),
            max_retries=int(bedrock_data.get("max_retries", 1))
        )

        storage_data = config_data.get("storage", {})
        storage_config = StorageConfig(
            uploads_dir=os.getenv("AIVA_UPLOADS_DIR", storage_data.get("uploads_dir", "data/uploads")),
            records_dir=storage_data.get("records_dir", "data/claims"),
            history_path=storage_data.get("history_path", "data/chathistory.json")
        )

        logging_data = config_data.get("logging", {})
        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", logging_data.get("level", "INFO")),
            format=logging_data.get(
                "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
            file=logging_data.get("file", "")
        )

        fa = config_data.get("form_assist", {}) or {}
        defaults = FormAssistConfig()
        form_assist_config = FormAssistConfig(
            call_timeout_seconds=float(
                os.getenv("AIVA_CALL_TIMEOUT", fa.get("call_timeout_seconds", defaults.call_timeout_seconds))
            ),
            max_document_chars=int(fa.get("max_document_chars", defaults.max_document_chars)),
            max_pdf_pages=int(fa.get("max_pdf_pages", defaults.max_pdf_pages)),
            validate_guided_answers=bool(fa.get("validate_guided_answers", False)),
            default_target_language=fa.get("default_target_language", defaults.default_target_language),
            field_aliases=dict(fa.get("field_aliases") or {}),
        )

        return cls(
            aws_region=aws_region,
            bedrock=bedrock_config,
            storage=storage_config,
            logging=logging_config,
            form_assist=form_assist_config,
        )
