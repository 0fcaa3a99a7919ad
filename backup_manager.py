#!/usr/bin/env python3
"""
RedBoat Hotel - Backup Manager
==============================
Backups lógicos de la base de datos en formato ZIP.

Características:
- Un archivo ZIP por backup: metadata.json + un JSON por tabla
- Restore completo (borra e inserta tabla por tabla en orden de dependencias)
- Restore desde un ZIP subido por el superadmin
- Rotación automática al ejecutarse como script: mantiene los últimos 7 días

Uso:
    python backup_manager.py
"""

import io
import json
import re
import sys
import zipfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List

from sqlalchemy import Date, DateTime
from sqlalchemy.orm import Session

from config import BACKUP_DIR
from database import BACKUP_TABLES
from errors import NotFoundError, ValidationFailed
from logging_config import get_logger
from services import with_db

logger = get_logger(__name__)

# ============================================
# CONFIGURACIÓN
# ============================================

BACKUP_VERSION = "1.0"
METADATA_FILE = "metadata.json"
FILENAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+\.zip$")

# Configuración de retención
RETENTION_DAYS = 7


# ============================================
# SERIALIZACIÓN
# ============================================

def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Tipo no serializable: {type(value).__name__}")


def _row_to_dict(model, obj) -> Dict:
    return {column.name: getattr(obj, column.key) for column in model.__table__.columns}


def _dict_to_row(model, data: Dict) -> Dict:
    """Convierte las fechas ISO de vuelta a date/datetime según el tipo de columna."""
    row = {}
    for column in model.__table__.columns:
        if column.name not in data:
            continue
        value = data[column.name]
        if isinstance(value, str):
            if isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(column.type, Date):
                value = date.fromisoformat(value)
        row[column.name] = value
    return row


def get_backup_filename() -> str:
    return f"backup-{datetime.now().strftime('%Y-%m-%dT%H-%M-%S-%f')}.zip"


def resolve_backup_path(filename: str, must_exist: bool = True) -> Path:
    """Valida el nombre (sin rutas, extensión .zip) y devuelve su ruta en BACKUP_DIR."""
    if not filename or not FILENAME_PATTERN.match(filename) or ".." in filename:
        raise ValidationFailed("Invalid backup filename")
    path = BACKUP_DIR / filename
    if must_exist and not path.is_file():
        raise NotFoundError("Backup file not found")
    return path


def _read_metadata(archive: zipfile.ZipFile) -> Dict:
    if METADATA_FILE not in archive.namelist():
        raise ValidationFailed("Invalid backup file: metadata.json missing")
    return json.loads(archive.read(METADATA_FILE))


# ============================================
# OPERACIONES
# ============================================

@with_db
def create_backup(db: Session) -> Dict:
    """Exporta todas las tablas a un ZIP nuevo en BACKUP_DIR."""
    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    filename = get_backup_filename()
    created_at = datetime.now().isoformat()

    counts = {}
    with zipfile.ZipFile(BACKUP_DIR / filename, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, model in BACKUP_TABLES.items():
            rows = [_row_to_dict(model, obj) for obj in db.query(model).all()]
            counts[name] = len(rows)
            archive.writestr(f"{name}.json", json.dumps(rows, default=_json_default, ensure_ascii=False))

        metadata = {
            "createdAt": created_at,
            "timestamp": created_at,
            "version": BACKUP_VERSION,
            "collections": counts,
        }
        archive.writestr(METADATA_FILE, json.dumps(metadata, indent=2))

    logger.info(f"✅ Backup creado: {filename} ({sum(counts.values())} registros)")
    return {
        "message": "Backup created successfully",
        "filename": filename,
        "metadata": {"createdAt": created_at, "version": BACKUP_VERSION, "collections": counts},
    }


def list_backups() -> Dict:
    """Backups disponibles, los más recientes primero."""
    if not BACKUP_DIR.exists():
        return {"backups": []}

    backups: List[Dict] = []
    for path in BACKUP_DIR.glob("*.zip"):
        stat = path.stat()
        try:
            with zipfile.ZipFile(path) as archive:
                metadata = _read_metadata(archive)
        except (zipfile.BadZipFile, ValidationFailed, ValueError) as e:
            logger.warning(f"No se pudo leer metadata de {path.name}: {e}")
            metadata = None
        backups.append({
            "filename": path.name,
            "size": stat.st_size,
            "createdAt": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            "metadata": metadata,
        })

    backups.sort(key=lambda b: b["createdAt"], reverse=True)
    return {"backups": backups}


def _restore_archive(db: Session, archive: zipfile.ZipFile) -> Dict:
    metadata = _read_metadata(archive)
    names = set(archive.namelist())
    tables = list(BACKUP_TABLES.items())
    results = {name: {"deleted": 0, "inserted": 0} for name, _ in tables if f"{name}.json" in names}

    try:
        # Hijos primero al borrar, padres primero al insertar
        for name, model in reversed(tables):
            if name in results:
                results[name]["deleted"] = db.query(model).delete(synchronize_session=False)
        for name, model in tables:
            if name not in results:
                continue
            rows = [_dict_to_row(model, item) for item in json.loads(archive.read(f"{name}.json"))]
            if rows:
                db.execute(model.__table__.insert(), rows)
            results[name]["inserted"] = len(rows)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.expire_all()
    return {"metadata": metadata, "results": results}


@with_db
def restore_backup(db: Session, filename: str) -> Dict:
    path = resolve_backup_path(filename)
    try:
        with zipfile.ZipFile(path) as archive:
            restored = _restore_archive(db, archive)
    except zipfile.BadZipFile:
        raise ValidationFailed("Invalid backup file")

    logger.info(f"♻️ Base restaurada desde {filename}")
    return {
        "message": "Database restored successfully",
        "restoredFrom": filename,
        "originalBackupDate": restored["metadata"].get("createdAt") or restored["metadata"].get("timestamp"),
        "results": restored["results"],
    }


@with_db
def restore_from_upload(db: Session, content: bytes, original_name: str = "upload.zip") -> Dict:
    if not content:
        raise ValidationFailed("No backup file uploaded")
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            restored = _restore_archive(db, archive)
    except zipfile.BadZipFile:
        raise ValidationFailed("Invalid backup file")

    logger.info(f"♻️ Base restaurada desde archivo subido {original_name}")
    return {
        "message": "Database restored successfully from uploaded file",
        "restoredFrom": original_name,
        "originalBackupDate": restored["metadata"].get("createdAt") or restored["metadata"].get("timestamp"),
        "results": restored["results"],
    }


def delete_backup(filename: str) -> Dict:
    path = resolve_backup_path(filename)
    path.unlink()
    logger.info(f"🗑️ Backup eliminado: {filename}")
    return {"message": "Backup deleted successfully"}


def cleanup_old_backups(retention_days: int = RETENTION_DAYS) -> int:
    """Elimina backups con más de `retention_days` días. Devuelve cuántos borró."""
    if not BACKUP_DIR.exists():
        return 0

    cutoff = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0
    for backup_file in BACKUP_DIR.glob("backup-*.zip"):
        if datetime.fromtimestamp(backup_file.stat().st_mtime) < cutoff:
            backup_file.unlink()
            logger.info(f"🗑️ Eliminado backup antiguo: {backup_file.name}")
            deleted_count += 1

    if deleted_count > 0:
        logger.info(f"Limpieza completada: {deleted_count} backups eliminados")
    else:
        logger.debug("No hay backups antiguos para eliminar")
    return deleted_count


def run_backup() -> bool:
    """Función principal que ejecuta el proceso de backup."""
    logger.info("=" * 50)
    logger.info("🔄 INICIANDO PROCESO DE BACKUP")
    logger.info(f"📁 Directorio de backups: {BACKUP_DIR}")
    logger.info("=" * 50)

    result = create_backup()
    logger.info(f"✅ {result['filename']}")

    logger.info("🧹 Ejecutando limpieza de backups antiguos...")
    cleanup_old_backups()
    return True


# ============================================
# PUNTO DE ENTRADA
# ============================================

if __name__ == "__main__":
    try:
        success = run_backup()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        logger.warning("Backup cancelado por el usuario")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error fatal en backup: {e}")
        sys.exit(1)
