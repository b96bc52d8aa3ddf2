from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Department whose HR_LEAVE_APPLICATION holders form the HR approval group.
    hr_dept_code: str = Field("AD", alias="HR_DEPT_CODE")
    # Lowest job level allowed to final-approve without a delegated permission.
    final_approval_min_job_level: int = Field(2, alias="FINAL_APPROVAL_MIN_JOB_LEVEL")
    annual_leave_default_days: float = Field(15, alias="ANNUAL_LEAVE_DEFAULT_DAYS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
