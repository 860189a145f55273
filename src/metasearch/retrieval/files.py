"""Read access to uploaded files: pre-extracted chunks, their embeddings, and images."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI

from metasearch.metrics.observability import get_logger
from metasearch.models import FileChunk, ImagePart

IMAGE_MIME_TYPES: Mapping[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}


class FileChunkStore(Protocol):
    """Lookup of uploaded files by id."""

    def load_chunks(self, file_ids: Sequence[str]) -> Sequence[FileChunk]:
        """Return the text chunks (with precomputed embeddings) of every document file."""

    def load_images(self, file_ids: Sequence[str]) -> Sequence[ImagePart]:
        """Return inline image parts for every image file."""


def _is_safe_file_id(file_id: str) -> bool:
    return bool(file_id) and Path(file_id).name == file_id and file_id not in {".", ".."}


class JsonFileChunkStore:
    """Reads ``<id>-extracted.json`` / ``<id>-embeddings.json`` / ``<id>-metadata.json`` from an uploads dir."""

    _logger = get_logger("files")

    def __init__(self, uploads_dir: str | Path) -> None:
        self._root = Path(uploads_dir)

    def _read(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))

    def is_image(self, file_id: str) -> bool:
        return _is_safe_file_id(file_id) and (self._root / f"{file_id}-metadata.json").exists()

    def load_chunks(self, file_ids: Sequence[str]) -> Sequence[FileChunk]:
        chunks: list[FileChunk] = []
        for file_id in file_ids:
            if not _is_safe_file_id(file_id) or self.is_image(file_id):
                continue
            content_path = self._root / f"{file_id}-extracted.json"
            embeddings_path = self._root / f"{file_id}-embeddings.json"
            if not content_path.exists() or not embeddings_path.exists():
                self._logger.warning("files.missing", file_id=file_id)
                continue
            content = self._read(content_path)
            vectors = self._read(embeddings_path).get("embeddings") or []
            texts = content.get("contents") or []
            if len(texts) != len(vectors):
                self._logger.warning("files.embedding_mismatch", file_id=file_id, chunks=len(texts), vectors=len(vectors))
            title = str(content.get("title") or file_id)
            for text, vector in zip(texts, vectors):
                chunks.append(
                    FileChunk(
                        owner_file_name=title,
                        content=str(text),
                        embedding=tuple(float(value) for value in vector),
                        file_id=file_id,
                    )
                )
        return chunks

    def load_images(self, file_ids: Sequence[str]) -> Sequence[ImagePart]:
        images: list[ImagePart] = []
        for file_id in file_ids:
            if not self.is_image(file_id):
                continue
            metadata = self._read(self._root / f"{file_id}-metadata.json")
            image_path = metadata.get("path")
            if not image_path:
                continue
            full_path = Path(image_path)
            if not full_path.is_absolute():
                full_path = self._root.parent / full_path
            if not full_path.exists():
                self._logger.warning("files.image_missing", file_id=file_id, path=str(full_path))
                continue
            mime_type = IMAGE_MIME_TYPES.get(full_path.suffix.lower(), "image/png")
            encoded = base64.b64encode(full_path.read_bytes()).decode("ascii")
            images.append(ImagePart(url=f"data:{mime_type};base64,{encoded}"))
        return images


class ChromaFileChunkStore:
    """File chunks kept in a Chroma collection, keyed by ``file_id`` metadata."""

    def __init__(
        self,
        collection_name: str = "metasearch-files",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def add_file(
        self,
        file_id: str,
        file_name: str,
        contents: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> None:
        """Store the chunks of one file; used by the offline extraction job."""

        if len(contents) != len(embeddings):
            raise ValueError("Mismatch between number of chunks and embedding vectors")
        self._collection.upsert(
            ids=[f"{file_id}-{order}" for order in range(len(contents))],
            documents=list(contents),
            embeddings=[list(vector) for vector in embeddings],
            metadatas=[{"file_id": file_id, "file_name": file_name, "order": order} for order in range(len(contents))],
        )

    def load_chunks(self, file_ids: Sequence[str]) -> Sequence[FileChunk]:
        if not file_ids:
            return []
        batch = self._collection.get(
            where={"file_id": {"$in": list(file_ids)}},
            include=["documents", "metadatas", "embeddings"],
        )
        documents = batch.get("documents")
        metadatas = batch.get("metadatas")
        vectors = batch.get("embeddings")
        if documents is None or metadatas is None or vectors is None:
            return []
        rows = list(zip(documents, metadatas, vectors))
        position = {file_id: index for index, file_id in enumerate(file_ids)}
        rows.sort(key=lambda row: (position.get(str(row[1].get("file_id")), len(position)), int(row[1].get("order", 0))))
        return [
            FileChunk(
                owner_file_name=str(metadata.get("file_name", "")),
                content=document,
                embedding=tuple(float(value) for value in vector),
                file_id=str(metadata.get("file_id", "")),
            )
            for document, metadata, vector in rows
        ]

    def load_images(self, file_ids: Sequence[str]) -> Sequence[ImagePart]:
        return []
