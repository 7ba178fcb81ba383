"""Application configuration."""
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MENUSKIP_",
    )
    
    # App settings
    app_name: str = "MenuSkip"
    debug: bool = False
    
    # Server settings
    host: str = "127.0.0.1"
    port: int = 8000
    
    # Sampling
    sample_rate_hz: float = 2.0  # Frames analysed per second of video
    process_width: int = 480  # Working width for analysis, 0 keeps source size
    seek_timeout_sec: float = 10.0
    
    # Matching
    matcher_strategy: Literal["template", "color"] = "color"
    correlation_threshold: float = 0.75
    min_area_fraction: float = 0.15
    hsv_lower: List[int] = [110, 50, 20]  # OpenCV HSV: H 0-180, S/V 0-255
    hsv_upper: List[int] = [150, 255, 255]
    morph_kernel_size: int = 5
    
    # Segmentation
    merge_gap_sec: float = 1.0
    padding_sec: float = 0.25
    
    # Reference image download
    reference_download_timeout_sec: float = 15.0
    
    # Jobs
    max_finished_jobs: int = 100  # Oldest finished jobs are evicted beyond this


settings = Settings()
