"""
Storage adapter interface for Markify.
Defines the contract that the persistence backend must implement.
"""

from typing import Protocol, List, Dict, Any, Optional, Tuple


class StorageAdapter(Protocol):
    """
    Protocol for file-record and draft persistence.

    Rows are plain dictionaries; routers map them to API schemas.
    """

    def ping(self) -> None:
        """Raise if the backend is unreachable."""
        ...

    # ========== Files ==========

    def create_files(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Insert file records for one batch atomically.

        Args:
            rows: Dicts with user_id, batch_id, original_name, relative_path,
                mime_type, size, storage_key, url, source.
                `id`, `filename`, `created_at` and `updated_at` are generated.

        Returns:
            The stored rows, in input order.
        """
        ...

    def list_files(
        self,
        user_id: str,
        source: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Newest first.

        Returns:
            (rows for the requested page, total row count for the filter)
        """
        ...

    def get_file(self, file_id: str) -> Optional[Dict[str, Any]]:
        ...

    def delete_files(self, user_id: str, ids: List[str]) -> List[Dict[str, Any]]:
        """
        Delete the user's files among `ids` (others are ignored).

        Returns:
            The deleted rows, so callers can remove the stored bytes.
        """
        ...

    def rename_file(self, user_id: str, file_id: str, new_name: str) -> Dict[str, Any]:
        """
        Rename a single file: original_name and the last relative_path segment.

        Raises:
            HTTPException 404 if the file does not exist for this user.
        """
        ...

    def rename_folder(self, user_id: str, batch_id: str, old_path: str, new_name: str) -> int:
        """
        Rename the folder `old_path` inside a batch for every file beneath it.

        Returns:
            Number of rows updated.
        """
        ...

    # ========== Drafts ==========

    def get_draft(self, file_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def upsert_draft(self, file_id: str, user_id: str, content: str) -> Dict[str, Any]:
        ...

    def delete_draft(self, file_id: str, user_id: str) -> int:
        ...
