from docvault.models.document import CategoryModel, DocumentModel

__all__ = ["CategoryModel", "DocumentModel"]
