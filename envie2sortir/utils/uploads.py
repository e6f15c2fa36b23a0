import uuid
from pathlib import Path
import logging

import aiofiles
import aiofiles.os
from fastapi import HTTPException, UploadFile

from envie2sortir.config import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_PDF_SIZE = 10 * 1024 * 1024  # 10MB


def _extension(filename: str) -> str:
    return filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''


def validate_image_file(file: UploadFile) -> None:
    """Valide le fichier image uploadé"""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Nom de fichier manquant")

    ext = _extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Extension non autorisée. Extensions autorisées: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if not file.content_type or not file.content_type.startswith('image/'):
        raise HTTPException(status_code=400, detail="Le fichier doit être une image")


def validate_pdf_file(file: UploadFile) -> None:
    if not file.filename:
        raise HTTPException(status_code=400, detail="Nom de fichier manquant")
    if file.content_type != "application/pdf" or _extension(file.filename) != "pdf":
        raise HTTPException(status_code=400, detail="Seuls les fichiers PDF sont acceptés")


async def read_upload(file: UploadFile, max_size: int = MAX_FILE_SIZE) -> bytes:
    content = await file.read()
    if len(content) > max_size:
        raise HTTPException(
            status_code=400,
            detail=f"Fichier trop volumineux ({max_size // (1024 * 1024)}MB maximum)",
        )
    return content


async def write_upload(content: bytes, subdir: str, ext: str) -> str:
    """Écrit le contenu sur disque et retourne son URL publique (/static/...)."""
    target_dir = Path(settings.UPLOAD_DIR) / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    file_path = target_dir / f"{uuid.uuid4().hex}.{ext}"

    async with aiofiles.open(file_path, "wb") as out_file:
        await out_file.write(content)

    logger.info(f"🖼️ Fichier enregistré : {file_path}")
    return "/" + file_path.as_posix()


async def save_upload(file: UploadFile, subdir: str) -> str:
    content = await read_upload(file)
    return await write_upload(content, subdir, _extension(file.filename))


def upload_path(url: str) -> Path:
    """Chemin disque d'une URL produite par write_upload."""
    return Path(url[1:] if url.startswith("/") else url)


async def delete_upload(url: str) -> bool:
    try:
        await aiofiles.os.remove(upload_path(url))
    except FileNotFoundError:
        logger.warning(f"⚠️ Fichier déjà absent : {url}")
        return False
    logger.info(f"🗑️ Fichier supprimé : {url}")
    return True
