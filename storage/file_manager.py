# storage/file_manager.py
"""Asynchronous file storage for generated documents."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Sequence
from typing import Protocol

from config import settings
from models.document_models import DocumentResult


class DocumentStore(Protocol):
    async def save_documents(
        self, project_id: str, documents: Sequence[DocumentResult]
    ) -> list[str]: ...


def _safe_name(value: str) -> str:
    return "".join(c if c.isalnum() or c in ["_", "-"] else "_" for c in value)


class FileDocumentStore:
    """Write each successful document below ``base_dir/<project_id>/``.

    Structured content goes to ``<type>.json``, Markdown to ``<type>.md``.
    Writes run in the default executor to keep the event loop free.
    """

    def __init__(self, base_dir: str = settings.BASE_OUTPUT_DIR) -> None:
        self.base_dir = base_dir

    async def save_documents(
        self, project_id: str, documents: Sequence[DocumentResult]
    ) -> list[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._save_documents_sync, project_id, list(documents)
        )

    def _save_documents_sync(
        self, project_id: str, documents: list[DocumentResult]
    ) -> list[str]:
        project_dir = os.path.join(self.base_dir, _safe_name(project_id))
        os.makedirs(project_dir, exist_ok=True)
        written: list[str] = []
        for document in documents:
            if not document.succeeded:
                continue
            if isinstance(document.content, str):
                path = os.path.join(project_dir, f"{document.type.value}.md")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(document.content)
            else:
                path = os.path.join(project_dir, f"{document.type.value}.json")
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(document.content, f, indent=2, ensure_ascii=False)
            written.append(path)
        return written
