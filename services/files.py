"""Cover image storage on the local filesystem."""
from __future__ import annotations

import os
import time
from typing import Iterable

from flask import current_app
from werkzeug.utils import secure_filename

from .errors import ValidationError


def file_extension(filename: str) -> str:
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


class FileStorage:
    def __init__(self, upload_folder: str, allowed_extensions: Iterable[str]):
        self.upload_folder = upload_folder
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}

    def allowed_file(self, filename: str) -> bool:
        return file_extension(filename) in self.allowed_extensions

    def save_file(self, source, user_id: int) -> str:
        """Store an uploaded file under ``user/<user_id>`` and return its path."""
        filename = secure_filename(source.filename or '')
        if not self.allowed_file(filename):
            raise ValidationError('Unsupported file type.')
        target_folder = os.path.join(self.upload_folder, 'user', str(user_id))
        os.makedirs(target_folder, exist_ok=True)
        target_path = os.path.join(target_folder, f'{time.time_ns()}.{file_extension(filename)}')
        try:
            source.save(target_path)
        except OSError:
            current_app.logger.exception('File was not saved: %s', target_path)
            raise
        current_app.logger.info('File saved to %s', target_path)
        return target_path
