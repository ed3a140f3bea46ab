"""DocVault

Personal document store: upload PDFs and DOCX files, search their text,
and ask questions about them.
"""

__version__ = "1.0.0"

from .config import load_config, DocVaultConfig
from .errors import DocVaultError

__all__ = [
    "load_config",
    "DocVaultConfig",
    "DocVaultError",
]
