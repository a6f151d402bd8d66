from typing import Optional


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        title: str,
        *,
        code: str,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(detail or title)
        self.title = title
        self.detail = detail
        self.code = code


class InvalidScoreError(DomainException):
    def __init__(self, player_score: int, opponent_score: int) -> None:
        super().__init__(
            title="Invalid game score",
            detail=f"score {player_score}-{opponent_score} is not on the score ladder",
            code="invalid_score",
        )
        self.player_score = player_score
        self.opponent_score = opponent_score


class PersistenceError(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            title="Persistence failure",
            detail=detail,
            code="persistence_failure",
        )


class SchemaVersionError(DomainException):
    def __init__(self, version: object, latest: int) -> None:
        super().__init__(
            title="Unsupported schema version",
            detail=f"persisted schema version {version!r} cannot be migrated to {latest}",
            code="schema_version",
        )
        self.version = version
        self.latest = latest
