class JuryBoardError(Exception):
    """Base exception for jury board errors."""

    pass


class TeamNotFoundError(JuryBoardError, LookupError):
    """Raised when a team id is not present in the current snapshot."""

    def __init__(self, team_id):
        super().__init__(f"Team {team_id!r} not found")
        self.team_id = team_id


class InvalidRankError(JuryBoardError, ValueError):
    """Raised when a rank choice cannot be parsed."""

    pass


class TeamStoreError(JuryBoardError):
    """Raised when the storage collaborator fails to persist or fetch teams."""

    pass
