from abc import ABC, abstractmethod


class Storage(ABC):
    @abstractmethod
    def save_receipt(self, user_id: str, filename: str | None, content_type: str | None, content: bytes) -> str:
        """Validate and store a receipt image; returns its public URL path."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, url: str) -> None:
        raise NotImplementedError
