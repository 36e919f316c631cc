"""
Document Validator
==================
Post-encode validation of produced PDF bytes.

Re-reads a document from its footer inwards and reports:
    - Header presence
    - startxref pointing at the real cross-reference section
    - Every xref entry landing on the matching "<id> 0 obj" header
    - Trailer /Size and /Root consistency
    - Catalog → page tree link and page count

Never raises on malformed input; problems are collected in the report.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .models import DocumentReport

logger = logging.getLogger(__name__)

_STARTXREF_RE = re.compile(rb"startxref\s+(\d+)\s+%%EOF")
_SUBSECTION_RE = re.compile(rb"xref\s*\n(\d+) (\d+)\s*\n")
_ENTRY_RE = re.compile(rb"(\d{10}) (\d{5}) ([fn]) ?\r?\n")
_SIZE_RE = re.compile(rb"/Size (\d+)")
_ROOT_RE = re.compile(rb"/Root (\d+) 0 R")
_PAGES_REF_RE = re.compile(rb"/Pages (\d+) 0 R")
_COUNT_RE = re.compile(rb"/Count (\d+)")
_PAGE_TYPE_RE = re.compile(rb"\d+ 0 obj\s*<<\s*/Type\s*/Page\b")

XREF_ENTRY_SIZE = 20


class DocumentValidator:
    """
    Validates an encoded document and produces a DocumentReport.
    """

    def validate(self, data: bytes) -> DocumentReport:
        """
        Run full validation on document bytes.

        Args:
            data: Complete document as produced by the encoder.

        Returns:
            DocumentReport with offsets, counts and any problems found.
        """
        report = DocumentReport(byte_size=len(data))

        if not data.startswith(b"%PDF-"):
            report.problems.append("Missing %PDF- header")

        footer = list(_STARTXREF_RE.finditer(data))
        if not footer:
            report.problems.append("Missing startxref footer")
            self._log(report)
            return report

        xref_offset = int(footer[-1].group(1))
        report.xref_offset = xref_offset

        subsection = _SUBSECTION_RE.match(data, xref_offset)
        if not subsection:
            report.problems.append(
                f"startxref {xref_offset} does not point at an xref section"
            )
            self._log(report)
            return report

        first_id = int(subsection.group(1))
        entry_count = int(subsection.group(2))
        position = subsection.end()

        for index in range(entry_count):
            obj_id = first_id + index
            entry = _ENTRY_RE.match(data, position)
            if not entry:
                report.problems.append(f"Malformed xref entry for object {obj_id}")
                break
            if entry.end() - position != XREF_ENTRY_SIZE:
                report.problems.append(
                    f"Xref entry for object {obj_id} is not {XREF_ENTRY_SIZE} bytes"
                )
            position = entry.end()

            if entry.group(3) == b"n":
                offset = int(entry.group(1))
                report.offsets[obj_id] = offset
                header = f"{obj_id} 0 obj".encode("ascii")
                if not data.startswith(header, offset):
                    report.problems.append(
                        f"Offset {offset} for object {obj_id} does not start "
                        f"with '{obj_id} 0 obj'"
                    )

        trailer = data[position:]
        size = _SIZE_RE.search(trailer)
        root = _ROOT_RE.search(trailer)
        if size:
            report.declared_size = int(size.group(1))
            if report.declared_size != first_id + entry_count:
                report.problems.append(
                    f"/Size {report.declared_size} does not match "
                    f"{first_id + entry_count} xref entries"
                )
        else:
            report.problems.append("Trailer is missing /Size")
        if root:
            report.root_id = int(root.group(1))
        else:
            report.problems.append("Trailer is missing /Root")

        if not report.problems:
            self._check_page_tree(data, report)

        self._log(report)
        return report

    def _check_page_tree(self, data: bytes, report: DocumentReport):
        """Follow Catalog → Pages and count page objects."""
        catalog = self._object_body(data, report, report.root_id)
        pages_ref = _PAGES_REF_RE.search(catalog or b"")
        if not pages_ref:
            report.problems.append("Catalog does not reference a page tree")
            return

        tree = self._object_body(data, report, int(pages_ref.group(1)))
        if tree is None or b"/Type /Pages" not in tree:
            report.problems.append("Catalog /Pages target is not a page tree")
            return

        count = _COUNT_RE.search(tree)
        declared = int(count.group(1)) if count else 0

        found = sum(
            1 for obj_id in report.offsets
            if _PAGE_TYPE_RE.match(self._object_body(data, report, obj_id) or b"")
        )
        report.page_count = found
        if declared != found:
            report.problems.append(
                f"Page tree declares {declared} pages, found {found}"
            )

    def _object_body(
        self,
        data: bytes,
        report: DocumentReport,
        obj_id: Optional[int],
    ) -> Optional[bytes]:
        offset = report.offsets.get(obj_id) if obj_id is not None else None
        if offset is None:
            return None
        end = data.find(b"endobj", offset)
        if end < 0:
            return None
        body = data[offset:end]
        # Dictionary only; stream payloads are not inspected
        stream_at = body.find(b"stream")
        return body[:stream_at] if stream_at >= 0 else body

    def _log(self, report: DocumentReport):
        logger.info("=" * 60)
        logger.info("DOCUMENT REPORT")
        logger.info("=" * 60)
        logger.info(f"Byte Size: {report.byte_size}")
        logger.info(f"Declared Objects: {report.declared_size}")
        logger.info(f"Pages: {report.page_count}")
        logger.info(f"Xref Offset: {report.xref_offset}")
        if report.problems:
            logger.warning(f"Problems: {len(report.problems)}")
            for problem in report.problems:
                logger.warning(f"  • {problem}")
        logger.info("=" * 60)
