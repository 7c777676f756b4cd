"""Core package containing configuration, database, retry and utilities."""
from acars_processor.core.config import Config, Settings, get_settings, load_config, parse_config
from acars_processor.core.database import Base, close_db, create_engine, create_session_factory, database_url, init_db
from acars_processor.core.exceptions import (
    ACARSProcessorError,
    AIResponseError,
    AnnotatorError,
    ConfigError,
    FilterError,
    MissingFieldError,
    ReceiverError,
    RetriableError,
    StoreError,
)
from acars_processor.core.retry import call_with_retry
from acars_processor.core.utils import (
    aircraft_or_tower,
    calculate_distance_nm,
    configure_logging,
    extract_last_json_object,
    is_blank,
    normalize_registration,
    parse_geolocation,
    vincenty_km,
)

__all__ = [
    "Config",
    "Settings",
    "get_settings",
    "load_config",
    "parse_config",
    "Base",
    "close_db",
    "create_engine",
    "create_session_factory",
    "database_url",
    "init_db",
    "ACARSProcessorError",
    "AIResponseError",
    "AnnotatorError",
    "ConfigError",
    "FilterError",
    "MissingFieldError",
    "ReceiverError",
    "RetriableError",
    "StoreError",
    "call_with_retry",
    "aircraft_or_tower",
    "calculate_distance_nm",
    "configure_logging",
    "extract_last_json_object",
    "is_blank",
    "normalize_registration",
    "parse_geolocation",
    "vincenty_km",
]
