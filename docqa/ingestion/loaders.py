"""
Corpus Loaders
---------------
Reads the document directory once at startup and returns plain text.

Supported formats:
  .txt   -- UTF-8 text (undecodable bytes replaced)
  .pdf   -- pypdf page text, pages joined with newlines
  .docx  -- python-docx paragraph text, joined with newlines

Anything else is skipped, as is any file that fails to parse.  A missing
directory yields an empty corpus rather than a failure.
"""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, Optional

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from loguru import logger
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docqa.errors import UnsupportedDocument
from docqa.utils.helpers import clean_text


def _read_txt(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise UnsupportedDocument(f"Unreadable text file {path.name}: {exc}") from exc
    return raw.decode("utf-8", errors="replace")


def _read_pdf(path: Path) -> str:
    try:
        reader = PdfReader(str(path))
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError, KeyError, OSError) as exc:
        raise UnsupportedDocument(f"Unreadable PDF {path.name}: {exc}") from exc


def _read_docx(path: Path) -> str:
    # Corrupt archives, missing parts and non-Word content types
    try:
        document = DocxDocument(str(path))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise UnsupportedDocument(f"Unreadable DOCX {path.name}: {exc}") from exc
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


READERS: dict[str, Callable[[Path], str]] = {
    ".txt": _read_txt,
    ".pdf": _read_pdf,
    ".docx": _read_docx,
}


def read_document(path: Path) -> Optional[str]:
    """Return the text of one file, or None when its extension is unsupported."""
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        return None
    return clean_text(reader(path))


def load_corpus_text(docs_dir: str | Path) -> tuple[str, list[str]]:
    """
    Concatenate the text of every supported file in docs_dir.

    Files are visited in name order so chunk positions are reproducible.

    Returns:
        (corpus_text, names_of_files_that_contributed_text)
    """
    root = Path(docs_dir)
    if not root.is_dir():
        logger.error(f"[Ingest] Docs directory not found: {root.resolve()}")
        return "", []

    files = sorted(p for p in root.iterdir() if p.is_file())
    logger.info(f"[Ingest] {len(files)} file(s) found in {root}")

    parts: list[str] = []
    loaded: list[str] = []
    for path in files:
        try:
            text = read_document(path)
        except UnsupportedDocument as exc:
            logger.warning(f"[Ingest] Skipping {path.name}: {exc}")
            continue
        if text is None:
            logger.debug(f"[Ingest] Ignoring unsupported file: {path.name}")
            continue
        parts.append(text)
        loaded.append(path.name)

    return "".join(parts), loaded
