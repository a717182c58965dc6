from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/social"
    redis_url: str = "redis://redis:6379/0"
    log_level: str = "INFO"

    # Auth settings
    session_cookie_name: str = "session"
    session_ttl: int = 86400  # 24 hours
    session_cookie_secure: bool = False  # True in production
    session_single_device: bool = False  # Drop older sessions on login when True
    session_cache_enabled: bool = True
    session_cache_sweep_interval: int = 10  # seconds
    session_purge_interval: int = 86400  # seconds, persisted sessions

    # Realtime settings
    realtime_backend: str = "redis"  # 'redis' or 'local'
    realtime_channel: str = "realtime"
    server_key: str = ""  # Shared key for the websocket proxy
    websocket_read_deadline: int = 60
    websocket_ping_interval: int = 25

    # Uploads
    uploads_dir: str = "persist/uploads"
    max_upload_size: int = 1024 * 1024  # 1 MiB

    # Workers
    dramatiq_broker: str = "redis"  # 'redis' or 'stub'

    class Config:
        env_file = ".env"


settings = Settings()
