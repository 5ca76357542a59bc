import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# Explicitly load .env from project root (parent of linkworker/)
ENV_PATH = Path(__file__).parent.parent / ".env"


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "on"


class Settings(BaseModel):
    access_password: str = ""
    cors: bool = True
    no_ref: bool = False
    unique_link: bool = False
    # "body": custom key comes from the JSON body, "path": POST /{key} also claims it
    routing_style: Literal["body", "path"] = "body"
    key_length: int = 6
    key_max_retries: int = 10
    # dev: SQLite file unless database_url says otherwise, prod: database_url required
    environment: str = "dev"
    database_url: str = ""

    model_config = ConfigDict(frozen=True)


def load_settings() -> Settings:
    load_dotenv(ENV_PATH)
    return Settings(
        access_password=os.getenv("API_KEY", ""),
        cors=_flag("CORS", "on"),
        no_ref=_flag("NO_REF", "off"),
        unique_link=_flag("UNIQUE_LINK", "off"),
        routing_style=os.getenv("ROUTING_STYLE", "body").strip().lower(),
        key_length=int(os.getenv("KEY_LENGTH", 6)),
        key_max_retries=int(os.getenv("KEY_MAX_RETRIES", 10)),
        environment=os.getenv("ENVIRONMENT", "dev").strip().lower(),
        database_url=os.getenv("DATABASE_URL", ""),
    )
