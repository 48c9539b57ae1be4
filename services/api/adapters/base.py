"""
Storage adapter interface for test records.
Defines the contract that all storage backends must implement.
"""

from typing import Protocol, List, Dict, Any, Optional


class StorageAdapter(Protocol):
    """
    Protocol defining the interface for test storage.

    Rows are plain dicts with snake_case keys:
        id, title, description, questions, pdf_url, created_at, updated_at
    Routers convert them with models.converters.row_to_test.
    """

    def create_test(
        self,
        title: str,
        description: str = "",
        questions: Optional[List[Dict[str, Any]]] = None,
        pdf_url: Optional[str] = None,
    ) -> str:
        """
        Create a new test record.

        Returns:
            Generated test id.
        """
        ...

    def list_tests(self) -> List[Dict[str, Any]]:
        """Return all tests, newest first."""
        ...

    def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a test row by id.

        Returns:
            Dict with test fields, or None if not found.
        """
        ...

    def update_test(self, test_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Overwrite the provided keys on a test row and bump 'updated_at'.

        Returns:
            The updated row.

        Raises:
            HTTPException 404 if the test does not exist.
        """
        ...
