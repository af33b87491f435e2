"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Call Notes Bridge"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # CORS
    CORS_ORIGINS: str = "*"  # Can be "*" or comma-separated list

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./call_notes.db"

    # Twilio
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    # Public base URL of this server, e.g. https://notes.example.com
    WEBHOOK_BASE_URL: str = ""
    # Calls from this number are treated as assistant calls and get audio streaming
    USER_PHONE_NUMBER: str = ""

    # OpenAI
    OPENAI_API_KEY: str = ""
    TRANSCRIPTION_MODEL: str = "whisper-1"
    SUMMARY_MODEL: str = "gpt-4"
    SUMMARY_MAX_TOKENS: int = 1000
    SUMMARY_TEMPERATURE: float = 0.3

    # Audio
    AUDIO_STORAGE_PATH: str = "./storage/audio"
    AUDIO_SAMPLE_RATE: int = 8000  # Hz, Twilio media streams are 8kHz mu-law
    AUDIO_CHANNELS: int = 1  # mono
    RECORDING_READY_DELAY: float = 3.0  # seconds to wait for a recording still processing

    # Dashboard
    STATS_BROADCAST_INTERVAL: int = 30  # seconds
    INITIAL_STATS_DELAY: float = 1.0  # seconds after a dashboard connects

    # Logging
    LOG_LEVEL: str = "INFO"

    # Supabase Storage (optional mirror of finalized audio files)
    SUPABASE_URL: str = ""  # Supabase project URL
    SUPABASE_KEY: str = ""  # Supabase service role key (for server-side operations)
    SUPABASE_STORAGE_BUCKET: str = "call-audio"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
