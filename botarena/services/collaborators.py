"""
External collaborators of the round engine.

The engine does not compile bots or run games. It consumes compile-status
facts through CompileStatusProvider and hands fixtures to a GameExecutor;
outcomes come back through ResultIngestionService.report_outcome().
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class CompileState(str, Enum):
    COMPILED = "compiled"
    ERROR = "error"


@dataclass(frozen=True)
class CompileStatus:
    state: CompileState
    error: str = ""

    @classmethod
    def compiled(cls) -> "CompileStatus":
        return cls(CompileState.COMPILED)

    @classmethod
    def failed(cls, message: str) -> "CompileStatus":
        return cls(CompileState.ERROR, message or "compilation failed")

    @property
    def ok(self) -> bool:
        return self.state == CompileState.COMPILED


class CompileStatusProvider(Protocol):
    async def get_compile_status(self, bot_id: str) -> CompileStatus:
        ...


@dataclass(frozen=True)
class TeamLineup:
    team_id: str
    bot_ids: Tuple[str, str]


@dataclass(frozen=True)
class FixtureDispatch:
    """Everything the game executor needs to run one fixture."""
    fixture_id: str
    competition_id: str
    round_number: int
    game_pack: str
    team1: TeamLineup
    team2: TeamLineup


class GameExecutor(Protocol):
    async def dispatch_fixture(self, dispatch: FixtureDispatch) -> str:
        """Start the game and return an opaque fixture handle."""
        ...


class DatabaseHandoffExecutor:
    """
    Executor for deployments where game workers poll round_fixtures.

    Dispatch only records the hand-off; the fixture id becomes the handle
    workers report back with.
    """

    def __init__(self, worker_pool: Optional[str] = None) -> None:
        self.worker_pool = worker_pool or "default"

    async def dispatch_fixture(self, dispatch: FixtureDispatch) -> str:
        logger.info(
            f"Fixture {dispatch.fixture_id} handed off to pool {self.worker_pool}: "
            f"round {dispatch.round_number}, {dispatch.team1.team_id} vs {dispatch.team2.team_id} "
            f"({dispatch.game_pack})"
        )
        return dispatch.fixture_id
