"""Output documents built from captured frames."""

from pagecapture.reports.pdf import AssembledDocument, DocumentAssembler, SavedDocument, list_documents

__all__ = ["AssembledDocument", "DocumentAssembler", "SavedDocument", "list_documents"]
