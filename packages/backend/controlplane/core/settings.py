from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    mysql_host: str = "127.0.0.1"
    mysql_port: int = 3306
    mysql_database: str = "controlplane"
    mysql_user: str = "controlplane"
    mysql_password: str = "change_me_mysql_app"

    jwt_private_key: str = ""
    jwt_public_key: str = ""
    jwt_issuer: str = "hosting-control-panel"
    session_ttl_days: int = 7

    license_private_key: str = ""
    license_public_key: str = ""
    license_default_validity_days: int = 365

    totp_issuer: str = "Hosting Control Panel"

    @property
    def database_url(self) -> str:
        return (
            f"mysql+aiomysql://{self.mysql_user}:{self.mysql_password}"
            f"@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}"
        )

    @property
    def normalized_jwt_private_key(self) -> str | None:
        return _normalize_pem(self.jwt_private_key)

    @property
    def normalized_jwt_public_key(self) -> str | None:
        return _normalize_pem(self.jwt_public_key)

    @property
    def normalized_license_private_key(self) -> str | None:
        return _normalize_pem(self.license_private_key)

    @property
    def normalized_license_public_key(self) -> str | None:
        return _normalize_pem(self.license_public_key)


def _normalize_pem(value: str) -> str | None:
    # .env files usually carry PEM blocks on one line with escaped newlines.
    text = value.strip().replace("\\n", "\n")
    return text or None


settings = Settings()
