import json
import logging
import logging.config
import sys


class JsonFormatter(logging.Formatter):
    """한 줄 JSON 로그 (Lambda / CloudWatch 용)"""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        log_record = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            log_record["request_id"] = request_id
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, ensure_ascii=False)


def setup_logging(log_level: str = "INFO", environment: str = "development", sql_echo: bool = False):
    """로깅 초기화

    development 에서는 사람이 읽기 쉬운 포맷, 그 외 환경에서는 JSON 한 줄 포맷을 쓴다.
    sql_echo 가 켜지면 SQLAlchemy 엔진 로그(원장 쿼리)를 INFO 로 출력한다.
    """
    log_level = log_level.upper()
    formatter = "simple" if environment == "development" else "json"

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s\n%(pathname)s:%(lineno)d\n%(message)s",
            },
            "simple": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
            },
            "json": {
                "()": JsonFormatter,
            },
        },
        "handlers": {
            "console": {
                "formatter": formatter,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
            },
            "error_console": {
                "formatter": "detailed" if formatter == "simple" else "json",
                "class": "logging.StreamHandler",
                "stream": sys.stderr,
                "level": "ERROR",
            },
        },
        "loggers": {
            "": {  # root logger
                "handlers": ["console"],
                "level": log_level,
                "propagate": True,
            },
            "ctiledger": {
                "handlers": ["console", "error_console"],
                "level": log_level,
                "propagate": False,
            },
            # 후속 작업 실패는 WARNING 으로 남는다
            "ctiledger.services.task_queue": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "handlers": ["console"],
                "level": "INFO" if sql_echo else "WARNING",
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(LOGGING_CONFIG)
