"""
RedBoat Hotel - Configuración
=============================

Valores leídos del entorno (.env soportado vía python-dotenv).
Todos los módulos importan desde aquí en lugar de llamar os.getenv directamente.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(os.path.abspath(os.path.dirname(__file__)))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Base de datos
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'hotel.db'}")

# Sesión (cookie JWT)
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
AUTH_COOKIE_NAME = "auth"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

# Frontend / CORS
CLIENT_ORIGIN = os.getenv("CLIENT_ORIGIN", "http://localhost:8501")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        f"{CLIENT_ORIGIN},http://localhost:5173,http://127.0.0.1:8501",
    ).split(",")
    if origin.strip()
]
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")

# Backups
BACKUP_DIR = Path(os.getenv("BACKUP_DIR", str(BASE_DIR / "backups")))

# Email (SMTP). Vacío = envío deshabilitado
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "RedBoat Hotel <no-reply@redboat.local>")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "php")

# Cuenta superadmin inicial (solo si no existe ninguna)
SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "")
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD", "")

# Notificaciones
NOTIFICATION_POLL_SECONDS = 20
STREAM_KEEPALIVE_SECONDS = 25
STREAM_MAX_BACKOFF_SECONDS = 30
# Sin actividad del dashboard se corta el polling y el stream
NOTIFICATION_IDLE_SECONDS = int(os.getenv("NOTIFICATION_IDLE_SECONDS", 900))
