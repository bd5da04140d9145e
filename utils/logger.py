import os
import logging
from logging.handlers import RotatingFileHandler


ROOT_LOGGER_NAME = "BoutArchiveLogger"

# Top-level prefixes of the service logger names
CHILD_LOGGER_PREFIXES = (
    "API",
    "ConfigService",
    "DatabaseService",
    "DownloadClients",
    "DownloadManagement",
    "DownloadManagementService",
    "FileNamingService",
    "ImportService",
    "QueueManager",
    "Service",
)

_LOGGER_INITIALIZED = False


def resolve_level(level):
    """Accept ``logging.INFO`` or names such as ``"debug"``."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _log_dir():
    return os.environ.get("BOUTARCHIVE_LOG_DIR") or os.path.join(os.path.dirname(__file__), '..', 'logs')


def setup_logger(name=ROOT_LOGGER_NAME, log_file="boutarchive.log", level=logging.INFO):
    """Set up the parent logger with a rotating file and a console handler (idempotent)."""
    global _LOGGER_INITIALIZED

    level = resolve_level(level)
    parent_logger = logging.getLogger(name)

    if _LOGGER_INITIALIZED and parent_logger.handlers:
        parent_logger.setLevel(level)
        return parent_logger

    log_dir = _log_dir()
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, log_file)

    parent_logger.setLevel(level)
    parent_logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler()

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        parent_logger.addHandler(handler)

    parent_logger.propagate = False
    _LOGGER_INITIALIZED = True

    setup_child_loggers(level)
    parent_logger.debug(f"Parent logger initialized - Log file: {log_path}")
    return parent_logger


def setup_child_loggers(level=logging.INFO):
    """Let the service logger hierarchies follow the parent's level."""
    logging.getLogger().setLevel(level)

    for prefix in CHILD_LOGGER_PREFIXES:
        child_logger = logging.getLogger(prefix)
        child_logger.setLevel(level)
        child_logger.propagate = True

    logging.getLogger(ROOT_LOGGER_NAME).debug(
        f"Configured {len(CHILD_LOGGER_PREFIXES)} child logger prefixes"
    )


def get_module_logger(module_name: str):
    """Get a named module logger sharing the parent's handlers."""
    main_logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not main_logger.handlers:
        setup_logger()

    module_logger = logging.getLogger(module_name)

    if not module_logger.handlers:
        for handler in main_logger.handlers:
            module_logger.addHandler(handler)

        module_logger.setLevel(main_logger.level)
        module_logger.propagate = False

    return module_logger


def get_logger(name=ROOT_LOGGER_NAME):
    """Get an existing logger instance."""
    return logging.getLogger(name)
