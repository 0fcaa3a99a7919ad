"""
RedBoat Hotel API - Backup Endpoints
====================================

Solo superadmin. Los archivos viven en BACKUP_DIR (ver backup_manager.py).
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from api.deps import client_info, get_db, require_superadmin

import backup_manager
from database import User
from services import ActivityLogService

router = APIRouter()


@router.post("/create", summary="Create Backup")
def create_backup(request: Request, actor: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    result = backup_manager.create_backup(db)
    ActivityLogService.log(db, "create", "backup", actor=actor, resource_id=result["filename"],
                           **client_info(request))
    return result


@router.get("/list", summary="List Backups")
def list_backups(_: User = Depends(require_superadmin)):
    return backup_manager.list_backups()


@router.get("/download/{filename}", summary="Download Backup")
def download_backup(filename: str, _: User = Depends(require_superadmin)):
    path = backup_manager.resolve_backup_path(filename)
    return FileResponse(path, media_type="application/zip", filename=filename)


@router.post("/restore/{filename}", summary="Restore Backup")
def restore_backup(filename: str, request: Request, actor: User = Depends(require_superadmin),
                   db: Session = Depends(get_db)):
    actor_email, info = actor.email, client_info(request)
    result = backup_manager.restore_backup(db, filename)
    ActivityLogService.log(db, "restore", "backup", actor_email=actor_email, resource_id=filename,
                           details=result["results"], **info)
    return result


@router.post("/upload", summary="Restore From Uploaded Backup")
def upload_backup(request: Request, file: Optional[UploadFile] = File(default=None),
                  actor: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    if file is None:
        content, name = b"", "upload.zip"
    else:
        content, name = file.file.read(), file.filename or "upload.zip"
    actor_email, info = actor.email, client_info(request)
    result = backup_manager.restore_from_upload(db, content, name)
    ActivityLogService.log(db, "restore-upload", "backup", actor_email=actor_email, resource_id=name,
                           details=result["results"], **info)
    return result


@router.delete("/{filename}", summary="Delete Backup")
def delete_backup(filename: str, request: Request, actor: User = Depends(require_superadmin),
                  db: Session = Depends(get_db)):
    result = backup_manager.delete_backup(filename)
    ActivityLogService.log(db, "delete", "backup", actor=actor, resource_id=filename, **client_info(request))
    return result
