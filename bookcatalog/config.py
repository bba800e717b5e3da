import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Storage settings
    database_file: str = os.getenv("BOOKCATALOG_DB_FILE", "bookcatalog.db")
    seed_csv: str = os.getenv("BOOKCATALOG_SEED_CSV", os.path.join("data", "book.csv"))

    # Security settings
    jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me-please-32chars")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "bookcatalog")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "bookcatalog-clients")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expiration_minutes: int = int(os.getenv("JWT_EXPIRATION_MINUTES", "60"))  # 1 hour

    # Demo accounts seeded into the in-memory user store
    admin_username: str = os.getenv("ADMIN_USERNAME", "admin@example.com")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "Admin#123")
    user_username: str = os.getenv("USER_USERNAME", "user@example.com")
    user_password: str = os.getenv("USER_PASSWORD", "User#123")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Book Catalog API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Pagination settings
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))


settings = Settings()
