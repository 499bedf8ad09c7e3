"""Binary document text extraction: PDF (pypdf), DOCX (python-docx), EPUB.

EPUB is read with stdlib ``zipfile`` following the OPF spine; chapter HTML
goes through beautifulsoup4 + html2text. ebooklib (AGPL-3.0) is NOT used.
"""

from __future__ import annotations

import warnings
import zipfile
from pathlib import Path

import html2text
import pypdf
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from docx import Document

# html.parser is used for OPF/container XML too; lxml is not a dependency.
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

BINARY_EXTENSIONS = frozenset({".pdf", ".docx", ".epub"})

_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0  # no line wrapping


def extract_text(path: Path | str) -> str:
    """Return the plain text of the PDF, DOCX or EPUB file at *path*.

    Raises:
        ValueError: If the extension is not a supported binary format, or
            the EPUB has no OPF package file.
        Any error raised by the underlying reader propagates unchanged.
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext == ".pdf":
        return _extract_pdf(path)
    if ext == ".docx":
        return _extract_docx(path)
    if ext == ".epub":
        return "\n\n".join(_extract_epub_chapters(path))
    raise ValueError(f"Unsupported document format: {ext or path.name!r}")


# ------------------------------------------------------------------
# PDF
# ------------------------------------------------------------------


def _extract_pdf(path: Path) -> str:
    # Pages that yield no text (scanned images, etc.) are skipped.
    reader = pypdf.PdfReader(path)
    parts: list[str] = []
    for page in reader.pages:
        stripped = (page.extract_text() or "").strip()
        if stripped:
            parts.append(stripped)
    return "\n\n".join(parts)


# ------------------------------------------------------------------
# DOCX
# ------------------------------------------------------------------


def _extract_docx(path: Path) -> str:
    doc = Document(path)
    paragraphs = [p.text.strip() for p in doc.paragraphs]
    return "\n\n".join(p for p in paragraphs if p)


# ------------------------------------------------------------------
# EPUB
# ------------------------------------------------------------------


def _html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def _extract_epub_chapters(path: Path) -> list[str]:
    """Return chapter plain text in spine order."""
    chapters: list[str] = []
    with zipfile.ZipFile(path, "r") as zf:
        names = set(zf.namelist())
        opf_path = _find_opf_path(zf, names)
        opf_dir = str(Path(opf_path).parent)

        for href in _parse_opf_spine(zf, opf_path):
            full_path = f"{opf_dir}/{href}".lstrip("/") if opf_dir != "." else href
            if full_path not in names:
                full_path = href
            if full_path not in names:
                continue
            text = _html_to_text(zf.read(full_path).decode("utf-8", errors="replace"))
            if text:
                chapters.append(text)
    return chapters


def _find_opf_path(zf: zipfile.ZipFile, names: set[str]) -> str:
    if "META-INF/container.xml" in names:
        xml = zf.read("META-INF/container.xml").decode("utf-8", errors="replace")
        rootfile = BeautifulSoup(xml, "html.parser").find("rootfile")
        if rootfile and rootfile.get("full-path"):
            return rootfile["full-path"]
    for name in sorted(names):
        if name.endswith(".opf"):
            return name
    raise ValueError("No OPF package file found in EPUB archive.")


def _parse_opf_spine(zf: zipfile.ZipFile, opf_path: str) -> list[str]:
    soup = BeautifulSoup(zf.read(opf_path).decode("utf-8", errors="replace"), "html.parser")

    # id → href for HTML manifest items
    manifest: dict[str, str] = {}
    for item in soup.find_all("item"):
        href = item.get("href", "")
        if "html" in item.get("media-type", "") or href.endswith((".html", ".xhtml", ".htm")):
            manifest[item.get("id", "")] = href

    hrefs = [
        manifest[ref.get("idref", "")]
        for ref in soup.find_all("itemref")
        if ref.get("idref", "") in manifest
    ]
    # No spine: all HTML items in manifest order
    return hrefs or list(manifest.values())
