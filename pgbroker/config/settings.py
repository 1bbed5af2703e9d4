"""
pgbroker configuration settings
"""
from typing import Optional, List, Dict, Any
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Broker settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "pgbroker"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Server
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)

    # Catalog (this broker offers exactly one service and one plan)
    SERVICE_ID: str = Field(default="postgres-c504319a-61e7-459e-83ac-01243787689b")
    SERVICE_NAME: str = Field(default="postgres")
    PLAN_ID: str = Field(default="postgres-c504319a-61e7-459e-83ac-01243787689b")
    PLAN_NAME: str = Field(default="shared")
    DESCRIPTION: str = Field(default="A shared PostgreSQL database")
    TAGS: str = Field(default="shared,postgres,postgresql,tinsmith")

    # Broker API credentials (HTTP basic auth)
    SB_BROKER_USERNAME: str = Field(default="b-postgres")
    SB_BROKER_PASSWORD: str = Field(default="postgres")

    # Platform metadata
    VCAP_SERVICES: Optional[str] = Field(default=None)
    VCAP_APPLICATION: Optional[str] = Field(default=None)
    USE_SERVICE: Optional[str] = Field(default=None)

    # Control database
    CONTROL_DATABASE: str = Field(default="broker")
    INSTANCE_EXPIRY_SECONDS: int = Field(default=3600)

    # Timeouts (unset means wait forever)
    STATEMENT_TIMEOUT_SECONDS: Optional[float] = Field(default=None)
    TASK_TIMEOUT_SECONDS: Optional[float] = Field(default=None)

    @field_validator("STATEMENT_TIMEOUT_SECONDS", "TASK_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def parse_timeout(cls, v):
        if v in ("", "0", 0):
            return None
        return v

    @property
    def tags(self) -> List[str]:
        """Catalog tags as a list"""
        return [tag.strip() for tag in self.TAGS.split(",") if tag.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.ENVIRONMENT == "development"

    def get_catalog(self) -> Dict[str, Any]:
        """Build the broker catalog for the single configured service/plan"""
        return {
            "services": [
                {
                    "id": self.SERVICE_ID,
                    "name": self.SERVICE_NAME,
                    "description": self.DESCRIPTION,
                    "bindable": True,
                    "tags": self.tags,
                    "plans": [
                        {
                            "id": self.PLAN_ID,
                            "name": self.PLAN_NAME,
                            "description": self.DESCRIPTION,
                        }
                    ],
                }
            ]
        }


# Create singleton instance
settings = Settings()
