from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="ctiledger/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "CTI Ledger API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (원장 상태 저장소)
    DATABASE_URL: str = "sqlite:///./ctiledger.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    AUTO_CREATE_TABLES: bool = True

    # Timezone (ID 타임스탬프 및 create_time 기준)
    TIMEZONE: str = "Asia/Shanghai"

    # Nonce / Replay protection
    NONCE_TTL_MINUTES: int = 30
    REPLAY_PROTECTION_ENABLED: bool = True
    TX_SIGNATURE_VERIFICATION_ENABLED: bool = False

    # Identifier
    ID_COLLISION_CHECK_ENABLED: bool = True
    ID_FALLBACK_SEED: int = 100000

    # Incentive mechanism 1 (common-point)
    INCENTIVE_ALPHA: float = 0.5
    INCENTIVE_BETA: float = 0.2
    INCENTIVE_GAMMA: float = 0.3

    # Incentive mechanism 2 (three-party game)
    GAME_K1: float = 0.5
    GAME_K2: float = 0.3
    GAME_K3: float = 0.4
    GAME_BETA: float = 0.6
    GAME_THETA: float = 0.2
    GAME_LAMBDA: float = 0.5
    GAME_MAX_DEVIATION: float = 0.3

    # Incentive clamps
    INCENTIVE_MIN_VALUE: float = 1.0
    COMMENT_BASELINE_SCORE: float = 60.0
    COMMENT_REVIEWER_MIN_POINTS: float = 1000.0

    # Pagination
    PAGINATION_DEFAULT_PAGE_SIZE: int = 10
    PAGINATION_MAX_PAGE_SIZE: int = 100
    PAGINATION_COUNT_LIMIT: int = 999999999

    # Statistics
    STATISTICS_MAX_RETRIES: int = 3
    UPCHAIN_HOURLY_RETENTION_HOURS: int = 168
    LATEST_SUMMARY_DEFAULT_LIMIT: int = 10

    # Accounts
    DEFAULT_USER_POINTS: float = 100.0
    DEFAULT_USER_LEVEL: int = 1
    ADMIN_USER_ID: str = "admin"
    ADMIN_USER_POINTS: float = 10000000000.0
    ADMIN_USER_LEVEL: int = 9
    LEVEL_ADVANCED_POINTS: float = 1000.0
    LEVEL_EXPERT_POINTS: float = 20000.0


settings = Settings()
