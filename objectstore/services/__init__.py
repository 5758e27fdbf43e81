from .storage_service import ObjectStorageService, PageIterator

__all__ = ["ObjectStorageService", "PageIterator"]
