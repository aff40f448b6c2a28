"""
Ebookshelf Backend: PDF Inspection
====================================

What:  Reads the page count of a PDF on local disk.
How:   PyMuPDF (`fitz`) opens the document in a worker thread.

A file that cannot be parsed yields 0 pages. The upload still succeeds;
progress for such a Book stays at 0%.
"""

import asyncio
import logging

import fitz

logger = logging.getLogger(__name__)


def _read_page_count(file_path: str) -> int:
    with fitz.open(file_path) as doc:
        return doc.page_count


async def count_pages(file_path: str) -> int:
    try:
        return await asyncio.to_thread(_read_page_count, file_path)
    except Exception as e:
        logger.warning("Could not read page count of %s: %s", file_path, str(e))
        return 0
