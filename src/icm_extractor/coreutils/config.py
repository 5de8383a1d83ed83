"""
Configuration - CLI flags with environment fallbacks

Every option can be given on the command line or through the environment
(optionally loaded from a .env file). Values are validated once, before the
extraction loop starts; the core only ever sees a frozen Settings object.
"""

import argparse
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from dotenv import load_dotenv

from icm_extractor.coreutils.retry import RetryConfig
from icm_extractor.extract.schemas import QueryScope
from icm_extractor.orchestration.scheduler import CronSchedule

DEFAULT_RETRIES = 5
DEFAULT_RETRY_DELAY_MS = 10 * 1000
DEFAULT_PERSISTENT_ERROR_COOLDOWN_MS = 2 * 60 * 1000
DEFAULT_PERSISTENT_ERROR_COOLDOWN_MAX_MS = 6 * 60 * 60 * 1000
DEFAULT_REQUEST_TIMEOUT = 300.0

BIGQUERY_OPTIONS = ("bq_keyfile", "bq_project", "bq_dataset", "bq_table")


class ConfigurationError(ValueError):
    """Raised when mandatory configuration is missing or invalid"""


@dataclass(frozen=True)
class Settings:
    """Validated process configuration"""

    username: str
    password: str
    https_proxy: Optional[str] = None
    retries: int = DEFAULT_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    persistent_error_cooldown_ms: int = DEFAULT_PERSISTENT_ERROR_COOLDOWN_MS
    persistent_error_cooldown_max_ms: int = DEFAULT_PERSISTENT_ERROR_COOLDOWN_MAX_MS
    cron: Optional[str] = None
    timezone: Optional[str] = None
    bq_keyfile: Optional[str] = None
    bq_project: Optional[str] = None
    bq_dataset: Optional[str] = None
    bq_table: Optional[str] = None
    output_dir: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    prostruct_seq: int = 3321
    uppgeneration_seq: int = 1841
    uppview_seq: int = 81
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig.from_retries(self.retries, self.retry_delay_ms)

    @property
    def scope(self) -> QueryScope:
        return QueryScope(
            prostruct_seq=self.prostruct_seq,
            uppgeneration_seq=self.uppgeneration_seq,
            uppview_seq=self.uppview_seq,
        )

    @property
    def uses_local_sink(self) -> bool:
        return bool(self.output_dir)

    @property
    def schedule(self) -> Optional[CronSchedule]:
        return CronSchedule(self.cron, self.timezone) if self.cron else None

    def validate(self) -> "Settings":
        """Check cross-field constraints, raising ConfigurationError"""
        missing = [name for name in ("username", "password") if not getattr(self, name)]

        if not self.uses_local_sink:
            missing.extend(name for name in BIGQUERY_OPTIONS if not getattr(self, name))

        if missing:
            raise ConfigurationError(
                f"Missing mandatory configuration: {', '.join(missing)}"
            )

        if self.persistent_error_cooldown_ms > self.persistent_error_cooldown_max_ms:
            raise ConfigurationError(
                "persistent_error_cooldown_ms must not exceed persistent_error_cooldown_max_ms"
            )

        if self.cron:
            try:
                CronSchedule(self.cron, self.timezone)
            except ValueError as e:
                raise ConfigurationError(f"Invalid cron expression {self.cron!r}: {e}") from e

        return self


def non_negative_int(value: str) -> int:
    """Parse an integer, clamping negatives to zero"""
    try:
        return max(int(value), 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}")


def positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value!r}")
    return parsed


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, treating empty strings as unset"""
    value = os.getenv(key)
    return value if value else default


def load_env_file(argv: Optional[Sequence[str]] = None) -> Optional[str]:
    """Load the .env file named by --env / ENV (or ./.env) into os.environ"""
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--env", default=_env("ENV"))
    known, _ = pre_parser.parse_known_args(argv)

    env_path = known.env or os.path.join(os.getcwd(), ".env")
    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
        return env_path

    return None


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser; defaults come from the environment"""
    parser = argparse.ArgumentParser(
        prog="icm-extractor",
        description="Extract ICM change-element data into BigQuery",
    )

    parser.add_argument("--env", default=_env("ENV"), help="Path to .env file")

    parser.add_argument("-u", "--username", default=_env("ICM_USERNAME"), help="ICM username")
    parser.add_argument("-p", "--password", default=_env("ICM_PASSWORD"), help="ICM password")
    parser.add_argument("--https-proxy", default=_env("HTTPS_PROXY"), help="HTTPS proxy URL")

    parser.add_argument(
        "-r",
        "--retry",
        dest="retries",
        type=non_negative_int,
        default=_env("RETRY", str(DEFAULT_RETRIES)),
        help="Retries per network operation",
    )
    parser.add_argument(
        "--retry-delay",
        dest="retry_delay_ms",
        type=non_negative_int,
        default=_env("RETRY_DELAY", str(DEFAULT_RETRY_DELAY_MS)),
        help="Time delay in ms before retrying errors",
    )
    parser.add_argument(
        "-c",
        "--persistent-error-cooldown",
        dest="persistent_error_cooldown_ms",
        type=non_negative_int,
        default=_env(
            "PERSISTENT_ERROR_COOLDOWN", str(DEFAULT_PERSISTENT_ERROR_COOLDOWN_MS)
        ),
        help="Time in ms between re-extraction attempts after a persistent error",
    )
    parser.add_argument(
        "--persistent-error-cooldown-max",
        dest="persistent_error_cooldown_max_ms",
        type=non_negative_int,
        default=_env(
            "PERSISTENT_ERROR_COOLDOWN_MAX",
            str(DEFAULT_PERSISTENT_ERROR_COOLDOWN_MAX_MS),
        ),
        help="Max time in ms between re-extraction attempts after a persistent error",
    )

    parser.add_argument("--cron", default=_env("CRON"), help="Cron expression to schedule extraction")
    parser.add_argument(
        "--timezone", default=_env("CRON_TIMEZONE"), help="Time zone the cron expression is evaluated in"
    )

    parser.add_argument("--bqkeyfile", dest="bq_keyfile", default=_env("BQKEYFILE"), help="BigQuery key file")
    parser.add_argument("--bqproject", dest="bq_project", default=_env("BQPROJECT"), help="BigQuery project name")
    parser.add_argument("--bqdataset", dest="bq_dataset", default=_env("BQDATASET"), help="BigQuery dataset name")
    parser.add_argument("--bqtable", dest="bq_table", default=_env("BQTABLE"), help="BigQuery table name")

    parser.add_argument(
        "--output-dir",
        default=_env("OUTPUT_DIR"),
        help="Write Parquet files to this directory instead of BigQuery (dry run)",
    )
    parser.add_argument(
        "--request-timeout",
        type=positive_float,
        default=_env("REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)),
        help="Per-request timeout in seconds",
    )

    parser.add_argument("--prostruct-seq", type=int, default=_env("PROSTRUCT_SEQ", "3321"))
    parser.add_argument("--uppgeneration-seq", type=int, default=_env("UPPGENERATION_SEQ", "1841"))
    parser.add_argument("--uppview-seq", type=int, default=_env("UPPVIEW_SEQ", "81"))

    parser.add_argument("--log-level", default=_env("LOG_LEVEL", "INFO"))
    parser.add_argument("--log-dir", default=_env("LOG_DIR"))

    return parser


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    """Parse and validate configuration

    Exits through argparse (status 2) when configuration is missing or invalid.
    """
    load_env_file(argv)

    parser = build_parser()
    args = vars(parser.parse_args(argv))
    args.pop("env", None)

    try:
        return Settings(**args).validate()
    except ConfigurationError as e:
        parser.error(str(e))
