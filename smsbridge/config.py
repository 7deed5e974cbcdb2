"""
Bridge configuration.

Loaded from a YAML file and validated with pydantic models.
"""

import logging
from pathlib import Path
from typing import Literal, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError, TemplateError
from .mail.render import TemplateRenderer

logger = logging.getLogger(__name__)


class ModemConfig(BaseModel):
    """Serial modem settings."""
    port: str
    baudrate: int = Field(default=115200, ge=300, le=4000000)
    read_timeout: float = Field(default=1.0, gt=0)
    command_timeout: float = Field(default=10.0, gt=0)
    send_timeout: float = Field(default=60.0, gt=0)


class ImapConfig(BaseModel):
    """Mailbox polled for SMS requests."""
    host: str
    port: int = Field(default=993, ge=1, le=65535)
    mailbox: str = "INBOX"


class SmtpConfig(BaseModel):
    """Server that received SMS are mailed through."""
    host: str
    port: int = Field(default=587, ge=1, le=65535)
    security: Literal["starttls", "ssl", "none"] = "starttls"


class MailConfig(BaseModel):
    """Mail accounts and addressing."""
    username: str = ""
    password: str = ""
    timeout: float = Field(default=30.0, gt=0)
    imap: ImapConfig
    smtp: SmtpConfig
    mail_from: str
    recipients: list[str] = Field(min_length=1)
    allowed_senders: list[str] = Field(default_factory=list)

    @field_validator("recipients", "allowed_senders", mode="before")
    @classmethod
    def split_address_list(cls, v: Union[str, list[str]]) -> list[str]:
        """Accept "a@x;b@y" as well as a YAML list."""
        if isinstance(v, str):
            return [a.strip() for a in v.split(";") if a.strip()]
        return v


class TextConfig(BaseModel):
    """Mustache templates for forwarded SMS."""
    received_subject: str = "SMS from {{from_number}}"
    received_body: str = "{{body}}\n\nReceived {{received_time}}"

    @field_validator("received_subject", "received_body")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Reject templates that do not parse."""
        try:
            TemplateRenderer.validate(v)
        except TemplateError as e:
            raise ValueError(str(e)) from e
        return v


class BridgeConfig(BaseModel):
    """Main loop timing."""
    idle_interval: float = Field(default=0.1, gt=0)
    mailbox_check_interval: float = Field(default=1.0, gt=0)
    max_receive_attempts: int = Field(default=3, ge=1)


class LogConfig(BaseModel):
    """Logging settings."""
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class Config(BaseModel):
    """Top-level configuration."""
    modem: ModemConfig
    mail: MailConfig
    text: TextConfig = TextConfig()
    bridge: BridgeConfig = BridgeConfig()
    log: LogConfig = LogConfig()


def load_config(config_path: Union[str, Path]) -> Config:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file is missing, is not valid YAML or fails validation
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        config = Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e

    logger.info(f"Loaded config from {path}")
    return config
