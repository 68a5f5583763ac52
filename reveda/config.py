"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import Optional

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"


class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        environment: Deployment environment (development, test, production)
        database_url: SQLAlchemy connection string

        # JWT settings
        jwt_access_secret: Secret used to sign access tokens
        jwt_refresh_secret: Secret used to sign refresh tokens (must differ from the access secret)
        jwt_algorithm: Algorithm used for JWT encoding
        access_token_expire_minutes: Access token lifetime in minutes
        refresh_token_expire_days: Refresh token lifetime in days

        # OTP settings
        otp_expire_minutes: Validity window of a one-time passcode
        notification_timeout_seconds: Upper bound on a single email/SMS dispatch

        # Email settings
        mail_username: SMTP server username
        mail_password: SMTP server password
        mail_from: Sender email address
        mail_server: SMTP server hostname
        mail_port: SMTP server port
        mail_use_ssl: Use implicit SSL (port 465) instead of STARTTLS

        # SMS settings
        twilio_account_sid / twilio_auth_token / twilio_phone_number: Twilio credentials
        sms_country_code: Prefix applied to local phone numbers before sending

        # Google sign-in
        google_client_id: Expected audience of Google ID tokens
        google_tokeninfo_url: Google endpoint used to validate ID tokens
        google_mock_token: Development-only sentinel token that skips Google verification

        # Bootstrap admin settings (optional)
        bootstrap_admin_email / bootstrap_admin_phone: Contact details of the first admin
    """
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite:///./reveda.db"

    # JWT settings
    jwt_access_secret: str = DEV_ACCESS_SECRET
    jwt_refresh_secret: str = DEV_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    # OTP settings
    otp_expire_minutes: int = 10
    notification_timeout_seconds: float = 10.0

    # Email settings
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from: Optional[str] = None
    mail_server: str = "smtp.gmail.com"
    mail_port: int = 465
    mail_use_ssl: bool = True

    # SMS settings
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    sms_country_code: str = "+91"

    # Google sign-in
    google_client_id: Optional[str] = None
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
    google_mock_token: str = "mock-google-id-token-dev"

    # Frontend settings
    frontend_url: str = "http://localhost:3000"

    # Rate limiting (requests per window per client IP)
    auth_rate_limit: int = 20
    otp_rate_limit: int = 5
    rate_limit_window_seconds: int = 60

    # Bootstrap admin settings (optional - only used for first admin creation)
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_phone: Optional[str] = None
    bootstrap_admin_first_name: str = "System"
    bootstrap_admin_last_name: str = "Administrator"

    # Cloudinary settings (optional - profile image uploads are disabled without them)
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


# Create settings instance
settings = Settings()
