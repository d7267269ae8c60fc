from abc import ABC, abstractmethod
from typing import Optional, List
from core.entities.user import User


class UserRepository(ABC):
    @abstractmethod
    def create_user(self, email: str, password_hash: str, is_admin: bool = False, full_name: str = "") -> User:...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:...

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]:...

    @abstractmethod
    def list_users(self) -> List[User]:...

    @abstractmethod
    def set_identity(self, user_id: int, status: str, documents: Optional[List[str]] = None) -> User:...

    @abstractmethod
    def update_identity_if(self, user_id: int, expected_status: str, new_status: str) -> bool:...

    @abstractmethod
    def set_admin(self, user_id: int, is_admin: bool) -> User:...
