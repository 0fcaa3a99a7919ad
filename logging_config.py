"""
RedBoat Hotel - Configuración Centralizada de Logging
=====================================================

Un único logger raíz "redboat" compartido por la API, los servicios,
el cliente HTTP y el dashboard de Streamlit:
- Consola siempre activa (DEBUG en desarrollo, INFO en producción)
- RotatingFileHandler para logs/redboat.log y logs/redboat_errors.log
- En ENVIRONMENT=test no se escriben archivos

Uso:
    from logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Reserva creada")
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import BASE_DIR, ENVIRONMENT

LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
ROOT_LOGGER_NAME = "redboat"

# Rotación
MAX_BYTES = 5 * 1024 * 1024  # 5 MB
BACKUP_COUNT = 3

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Librerías ruidosas que solo interesan en WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "stripe", "multipart")


def _rotating_handler(filename: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LOG_DIR / filename,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(environment: str = ENVIRONMENT) -> logging.Logger:
    """
    Configura el logger raíz de la aplicación una sola vez.

    Args:
        environment: "development", "production" o "test"

    Returns:
        Logger raíz configurado
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if root_logger.handlers:
        return root_logger

    root_logger.setLevel(logging.DEBUG)
    root_logger.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if environment == "production" else logging.DEBUG)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if environment != "test":
        root_logger.addHandler(_rotating_handler("redboat.log", logging.INFO, formatter))
        root_logger.addHandler(_rotating_handler("redboat_errors.log", logging.ERROR, formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger hijo de "redboat" para un módulo.

    Ejemplo:
        logger = get_logger(__name__)
    """
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_root_logger = setup_logging()
