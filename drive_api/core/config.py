from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Drive Tree API"
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # blob store the Blob Delegate talks to
    BLOB_STORE_URL: str = "http://localhost:9001"
    BLOB_PUBLIC_URL: str = "http://localhost:9001"
    BLOB_TIMEOUT_SECONDS: float = 10.0

    # tree walks fail with CorruptTree past this depth
    MAX_TREE_DEPTH: int = 64
    DELETE_WORKERS: int = 4

    UPLOAD_CALLBACK_SECRET: str = ""
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def blob_url_prefix(self) -> str:
        return f"{self.BLOB_PUBLIC_URL.rstrip('/')}/f/"


settings = Settings()
