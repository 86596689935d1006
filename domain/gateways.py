"""Domain Gateway Interfaces - outbound collaborators"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from uuid import UUID

from domain.enums import NotificationType


class NotificationGateway(ABC):
    """Creates in-app notifications for registered users"""

    @abstractmethod
    async def create_for_user(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass


class EmailGateway(ABC):
    """Sends templated emails

    Implementations must not raise: delivery problems are recorded, not
    propagated.
    """

    @abstractmethod
    async def send_template(
        self,
        template: str,
        recipient_email: str,
        subject: str,
        text: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        pass
