"""Collaborator interface to the host LMS (users, enrollment)."""

from typing import Any, Protocol

from starlette.requests import Request

from lmsmobile.verify.types import IdentityClaims


class HostLMS(Protocol):
    """What the verification endpoints need from the LMS they serve."""

    async def get_current_user_id(self, request: Request) -> int | str | None:
        """The signed-in user for this request, or None."""
        ...

    async def enroll_student(
        self, user_id: int | str, course_id: int | str, source: str
    ) -> None:
        """Enroll a user in a course after a verified purchase."""
        ...

    async def login_or_register(self, identity: IdentityClaims) -> dict[str, Any]:
        """Find or create the user behind a verified identity and log them in."""
        ...
