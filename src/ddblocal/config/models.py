from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class Settings(BaseSettings):
    """
    Resolved configuration of a DynamoDB Local emulator used in tests.

    Loads values from the following sources:
    - Environment variables (with prefix DDBLOCAL_, e.g. DDBLOCAL_LIB, DDBLOCAL_JAR)
    - Initialization values (e.g., from YAML)
    - .env file
    - Secret files

    Instances are frozen: overrides produce new copies via model_copy(update=...).
    """

    model_config = SettingsConfigDict(env_prefix="DDBLOCAL_", frozen=True)

    port: int = Field(default=8000, ge=1, le=65535)  # Emulator port
    lib: str = ""  # Native library directory (DynamoDBLocal_lib)
    jar: str = ""  # Path to DynamoDBLocal.jar
    java: str = "java"  # Executable used to launch the jar
    host: str = "localhost"  # Host used by the presence probe and the client endpoint

    presence_timeout: float = Field(default=0.5, gt=0)  # Probe request timeout (seconds)
    # Prefix of the "__type" field of DynamoDB Local's unauthenticated error reply
    type_prefix: str = "com.amazonaws.dynamodb"

    # Placeholder credentials: DynamoDB Local accepts anything
    region: str = "test"
    access_key: str = "test"
    secret_key: str = "test"

    ready_timeout: float = Field(default=30.0, ge=0)  # Wait after launch; 0 disables
    ready_interval: float = Field(default=0.25, gt=0)  # Poll interval while waiting

    read_capacity: int = Field(default=1, ge=1)  # Injected ReadCapacityUnits
    write_capacity: int = Field(default=1, ge=1)  # Injected WriteCapacityUnits

    process_log: str | None = "artifacts/dynamodb-local.log"  # Emulator stdout/stderr

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,  # type: type[BaseSettings]
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Loading priority:
        1. Environment variables
        2. Initialization values (e.g., from YAML)
        3. .env file
        4. Secret files
        """
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"
