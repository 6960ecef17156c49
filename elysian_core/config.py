"""
Configuration for the inference engine
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Models
    # Relative weights paths in the catalog are resolved under this directory.
    MODELS_DIR: str = "/models"

    # GPU
    # When False, models that prefer a GPU are still compiled for CPU only.
    PREFER_GPU: bool = True

    # Inference
    # Serialize inference calls per model id for runtimes that are not
    # reentrant on a single session.
    SERIALIZE_INFERENCE: bool = False

    # Processing
    MAX_IMAGE_SIZE: int = 4096  # Max dimension

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
