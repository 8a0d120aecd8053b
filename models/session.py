from dataclasses import dataclass


@dataclass(frozen=True)
class SessionContext:
    """The signed-in user, passed explicitly to services instead of read from a global."""
    user_id: int
    email: str
    username: str = ""

    @property
    def normalized_email(self) -> str:
        return self.email.lower()
