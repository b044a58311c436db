"""Document loaders — thin wrappers around LangChain document loaders."""

from __future__ import annotations

from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader, TextLoader

from georag.errors import ValidationError


def load_pdf(path: str | Path) -> str:
    """Extract the text of every page of a PDF, joined by blank lines."""
    pages = PyPDFLoader(str(path)).load()
    return "\n\n".join(page.page_content for page in pages)


def load_plain_text(path: str | Path) -> str:
    """Load a UTF-8 text / Markdown file."""
    docs = TextLoader(str(path), encoding="utf-8", autodetect_encoding=True).load()
    return "\n\n".join(doc.page_content for doc in docs)


def load_text(path: str | Path, filename: str | None = None) -> str:
    """Extract text from a staged upload, picking the loader from the file suffix.

    *filename* is the client-supplied name; staged files may carry a
    different (temporary) name on disk.
    """
    suffix = Path(filename or str(path)).suffix.lower()
    try:
        if suffix == ".pdf":
            return load_pdf(path)
        return load_plain_text(path)
    except Exception as exc:
        raise ValidationError(
            f"Could not extract text: {exc}", filename=filename or Path(path).name
        ) from exc
