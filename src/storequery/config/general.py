import warnings
from typing import Annotated, ClassVar, Literal, override

from pydantic import AfterValidator, BaseModel, Field, SecretStr
from pydantic_file_secrets import FileSecretsSettingsSource, SettingsConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    YamlConfigSettingsSource,
)

from storequery.types.general import LogLevel, Refresh

# Filter warnings about secrets because they're optional
warnings.filterwarnings(
    action="ignore", message='directory "/run/secrets" does not exist'
)
warnings.filterwarnings(
    action="ignore", message='directory "config/secrets" does not exist'
)


def uppercase(value: str) -> str:
    """Make a string uppercase."""
    return value.upper()


class TransportSettings(BaseModel):
    """Settings for the Elasticsearch-backed transport."""

    scheme: Literal["http", "https"] = "http"
    host: str = "localhost"
    port: int = 9200
    username: str = ""
    password: SecretStr = SecretStr("")
    api_key: SecretStr | None = None
    request_timeout: Annotated[
        float,
        Field(description="Time in seconds before a request to the store times out."),
    ] = 30
    verify_certs: Annotated[
        bool, Field(description="Verify TLS certificates when scheme is https.")
    ] = True

    @property
    def url(self) -> str:
        """Get the complete URL of the store."""
        return f"{self.scheme}://{self.host}:{self.port}"


class BulkSettings(BaseModel):
    """Settings for bulk requests."""

    refresh: Annotated[
        Refresh,
        Field(
            description="Refresh policy for bulk requests that do not set one. 'false' omits the parameter."
        ),
    ] = Refresh.FALSE


class SearchSettings(BaseModel):
    """Settings for search requests."""

    default_index: Annotated[
        str,
        Field(
            description="Index searched when a request names none. Empty searches every index."
        ),
    ] = ""


class GeneralConfig(BaseSettings):
    """General storequery config."""

    log_level: Annotated[
        LogLevel,
        AfterValidator(uppercase),
    ] = Field(
        default="INFO",
        description="Level of logs to print.",
    )

    transport: TransportSettings = TransportSettings()
    bulk: BulkSettings = BulkSettings()
    search: SearchSettings = SearchSettings()

    # Weird override happening here, see https://github.com/makukha/pydantic-file-secrets for an explanation
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(  # pyright:ignore[reportIncompatibleVariableOverride] This is the intended pattern
        case_sensitive=False,
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config/config.yaml",
        yaml_file_encoding="utf-8",
        secrets_dir=["config/secrets", "/run/secrets"],
        secrets_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    @override
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Ensure proper setting priority order."""
        return (
            env_settings,
            FileSecretsSettingsSource(file_secret_settings),
            file_secret_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            init_settings,
        )


CONFIG = GeneralConfig()
