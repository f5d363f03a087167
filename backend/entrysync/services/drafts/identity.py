from abc import ABC, abstractmethod
from typing import Optional


class IdentityProvider(ABC):
    """Supplies the acting user recorded on every synchronized item."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        pass


class StaticIdentity(IdentityProvider):
    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id
