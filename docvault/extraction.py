"""Text extraction for uploaded documents.

PDFs are read directly with PyMuPDF. DOCX files are first converted to PDF
by LibreOffice running headless inside a scratch directory, then read the
same way. The scratch directory is always removed, whether conversion
succeeds or not.
"""

import logging
import re
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF

from .config import DOCX_MIME_TYPE, PDF_MIME_TYPE, UploadConfig
from .errors import ExtractionError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

DOCUMENT_KINDS = {
    PDF_MIME_TYPE: "pdf",
    DOCX_MIME_TYPE: "docx",
}


def detect_document_kind(content_type: Optional[str], allowed_types: List[str]) -> str:
    """Map a declared MIME type to "pdf" or "docx"."""
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in allowed_types or mime not in DOCUMENT_KINDS:
        raise UnsupportedFileTypeError()
    return DOCUMENT_KINDS[mime]


def _final_cleanup(text: str) -> str:
    """Collapse runs of blank lines and trailing spaces."""
    text = re.sub(r'[ \t]+\n', '\n', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


class PDFTextExtractor:
    """Plain-text extraction from PDF bytes."""

    def extract_text(self, data: bytes) -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"Could not open PDF: {e}")
            raise ExtractionError() from e

        if doc.page_count == 0:
            doc.close()
            logger.error("PDF has no pages")
            raise ExtractionError()

        try:
            text_parts = []
            for page in doc:
                text = page.get_text()
                if text.strip():
                    text_parts.append(text)
        except Exception as e:
            logger.error(f"Error extracting PDF text: {e}")
            raise ExtractionError() from e
        finally:
            doc.close()

        return _final_cleanup("\n".join(text_parts))


class DocxConverter:
    """DOCX → PDF conversion through LibreOffice headless."""

    def __init__(self, command: List[str], timeout: int = 120, scratch_dir: Optional[str] = None):
        self.command = list(command)
        self.timeout = timeout
        self.scratch_dir = scratch_dir

    def convert_to_pdf(self, data: bytes, filename: str) -> bytes:
        if self.scratch_dir:
            Path(self.scratch_dir).mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix="docvault_", dir=self.scratch_dir) as workdir:
            work = Path(workdir)
            source = work / f"source{Path(filename).suffix or '.docx'}"
            source.write_bytes(data)

            cmd = self.command + [
                f"-env:UserInstallation={(work / 'profile').as_uri()}",
                "--convert-to", "pdf",
                "--outdir", str(work),
                str(source),
            ]
            logger.info(f"Converting {filename} to PDF")
            try:
                subprocess.run(cmd, check=True, capture_output=True, timeout=self.timeout)
            except FileNotFoundError as e:
                logger.error(f"DOCX converter not found: {self.command[0]}")
                raise ExtractionError("Failed to convert DOCX to PDF") from e
            except subprocess.TimeoutExpired as e:
                logger.error(f"DOCX conversion timed out after {self.timeout}s: {filename}")
                raise ExtractionError("Failed to convert DOCX to PDF") from e
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or b"").decode("utf-8", errors="ignore")[:500]
                logger.error(f"DOCX conversion failed for {filename}: {stderr}")
                raise ExtractionError("Failed to convert DOCX to PDF") from e

            converted = source.with_suffix(".pdf")
            if not converted.exists():
                logger.error(f"DOCX conversion produced no output for {filename}")
                raise ExtractionError("Failed to convert DOCX to PDF")
            return converted.read_bytes()


class TextExtractor:
    """Dispatches extraction by document kind."""

    def __init__(self, pdf_extractor: PDFTextExtractor, docx_converter: DocxConverter):
        self.pdf_extractor = pdf_extractor
        self.docx_converter = docx_converter

    @classmethod
    def from_config(cls, upload_config: UploadConfig) -> "TextExtractor":
        return cls(
            PDFTextExtractor(),
            DocxConverter(
                command=upload_config.converter_command,
                timeout=upload_config.conversion_timeout,
                scratch_dir=upload_config.scratch_dir,
            ),
        )

    def extract(self, data: bytes, kind: str, filename: str) -> str:
        if kind == "docx":
            data = self.docx_converter.convert_to_pdf(data, filename)
        elif kind != "pdf":
            raise UnsupportedFileTypeError()
        return self.pdf_extractor.extract_text(data)
