"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.
Where it fits: every client, the CLI and the local emulator read their knobs from here.

WHAT IS HAPPENING HERE:
Stream timings, redirect limits and reconnect backoff are declared once.
A long-lived event stream needs a much longer read timeout than a one-shot
request, so the two are kept apart.
"""
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Database endpoint
    DATABASE_HOST: str = "http://127.0.0.1:8000"
    DATABASE_PATH: str = ""
    FUNCTION_HOST: str = ""

    # HTTP
    REQUEST_TIMEOUT_S: float = 10.0
    # The server sends a keep-alive roughly every 30s; silence beyond this means the stream is dead.
    STREAM_READ_TIMEOUT_S: float = 60.0
    MAX_REDIRECTS: int = 10

    # Reconnect backoff (owner policy, not the session's)
    RECONNECT_BASE_DELAY_S: float = 1.0
    RECONNECT_MAX_DELAY_S: float = 32.0
    RECONNECT_JITTER: float = 0.1

    # Local emulator
    EMULATOR_KEEP_ALIVE_INTERVAL_S: float = 30.0
    EMULATOR_QUEUE_SIZE: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

settings = Settings()
