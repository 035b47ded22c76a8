"""
Blackjack session orchestrator.

`Game` owns the shoe, the house bank and the seated players, and drives one
`Round` at a time:

    game = Game(rules=preset("vegas_strip"))
    alice = game.add_player("Alice", 1000)
    game.start_round([PlayerBet(alice.id, 25)])
    while game.get_available_actions():
        game.play_action("stand")
    game.complete_round()
    summary = game.end_session()

Rounds that reach settlement are settled automatically; `complete_round`
then clears the table for the next bets.
"""

import logging
import random
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from cutcard.blackjack.action import Action
from cutcard.blackjack.bank import Bank, House
from cutcard.blackjack.round import (
    InsuranceResolution,
    PlayerRoundInfo,
    Round,
    RoundState,
)
from cutcard.blackjack.rules import RuleSet
from cutcard.blackjack.settlement import SettlementResult
from cutcard.common.card import Card
from cutcard.common.errors import (
    InvalidActionError,
    PlayerNotFoundError,
    WrongStateError,
)
from cutcard.common.shoe import Shoe
from cutcard.events.audit import AuditLogger
from cutcard.events.emitter import EventEmitter, EventType
from cutcard.state.models import GameSnapshot, PlayerSnapshot, RoundSnapshot

logger = logging.getLogger(__name__)


class GamePhase(Enum):
    WAITING_FOR_BETS = "waiting_for_bets"
    IN_ROUND = "in_round"
    ROUND_COMPLETE = "round_complete"
    ENDED = "ended"


@dataclass
class Player:
    """A seated player and their bankroll."""

    name: str
    bank: Bank
    id: str
    initial_bankroll: float

    @property
    def balance(self) -> float:
        return self.bank.balance

    @property
    def net_result(self) -> float:
        return self.bank.balance - self.initial_bankroll


@dataclass(frozen=True)
class PlayerBet:
    player_id: str
    amount: float


@dataclass(frozen=True)
class SessionSummary:
    """
    Results of a finished session.

    Attributes:
        session_id: Identifier of the session
        rounds_played: Number of settled rounds
        hands_played: Number of settled hands, split hands included
        total_wagered: Sum of settled bets, doubles and splits included
        player_results: Net result per player id
        house_profit_loss: House result (positive when the house is ahead)
        house_balance: Final house bankroll
        mean_round_profit: Mean player result per round
        std_round_profit: Standard deviation of the player result per round
        outcomes: Count of hands per outcome ("win", "lose"...)
    """

    session_id: str
    rounds_played: int
    hands_played: int
    total_wagered: float
    player_results: Dict[str, float]
    house_profit_loss: float
    house_balance: float
    mean_round_profit: float
    std_round_profit: float
    outcomes: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "rounds_played": self.rounds_played,
            "hands_played": self.hands_played,
            "total_wagered": self.total_wagered,
            "player_results": dict(self.player_results),
            "house_profit_loss": self.house_profit_loss,
            "house_balance": self.house_balance,
            "mean_round_profit": self.mean_round_profit,
            "std_round_profit": self.std_round_profit,
            "outcomes": dict(self.outcomes),
        }


BetSpec = Union[PlayerBet, Mapping[str, Any]]


def _coerce_bet(bet: BetSpec) -> PlayerBet:
    if isinstance(bet, PlayerBet):
        return bet
    try:
        return PlayerBet(bet["player_id"], bet["amount"])
    except (KeyError, TypeError):
        raise ValueError(f"Invalid bet: {bet!r}") from None


class Game:
    """
    A blackjack session: one shoe, one house, any number of players.

    Args:
        deck_count: Number of decks in the shoe
        penetration: Fraction of the shoe dealt before it is replaced
        starting_house_bankroll: Initial house balance
        rules: Table rules (default RuleSet() with deck_count applied)
        test_stack: Fixed card order used for every shoe, for tests
        rng: Random source for shuffling
        emitter: Event emitter for the audit trail; one is created when omitted
        audit: Attach an AuditLogger to the emitter
    """

    def __init__(
        self,
        deck_count: int = 6,
        penetration: float = 0.75,
        starting_house_bankroll: float = 1_000_000,
        rules: Optional[RuleSet] = None,
        test_stack: Optional[List[Card]] = None,
        rng: Optional[random.Random] = None,
        emitter: Optional[EventEmitter] = None,
        audit: bool = False,
    ):
        self.rules = rules if rules is not None else RuleSet(deck_count=deck_count)
        self.deck_count = self.rules.deck_count if rules is not None else deck_count
        self.penetration = penetration
        self._test_stack = list(test_stack) if test_stack is not None else None
        self._rng = rng

        self.house = House(starting_house_bankroll)
        self._players: Dict[str, Player] = {}
        self._current_round: Optional[Round] = None
        self._round_number = 0
        self.phase = GamePhase.WAITING_FOR_BETS

        self._round_profits: List[float] = []
        self._hands_played = 0
        self._total_wagered = 0.0
        self._outcomes: Counter = Counter()

        self._session_id = f"session-{uuid.uuid4()}"
        self.emitter = emitter if emitter is not None else EventEmitter()
        self.emitter.set_context(self._session_id, 0)
        self.audit_logger = None
        if audit:
            self.audit_logger = AuditLogger()
            self.audit_logger.attach(self.emitter)

        logger.info(
            "Session %s started: %s", self._session_id, self.rules.describe()
        )
        self.emitter.emit(
            EventType.SESSION_START,
            {
                "deck_count": self.deck_count,
                "penetration": penetration,
                "house_bankroll": starting_house_bankroll,
                "rules": self.rules.to_dict(),
            },
        )

        self.shoe = self._new_shoe()

    def _new_shoe(self) -> Shoe:
        shoe = Shoe(self.deck_count, self.penetration, self._test_stack, self._rng)
        self.emitter.emit(
            EventType.SHUFFLE,
            {
                "deck_count": self.deck_count,
                "total_cards": shoe.remaining_cards,
                "cut_card_position": shoe.cut_card_position,
            },
        )
        return shoe

    # Players

    def _check_not_in_round(self, what: str) -> None:
        if self.phase is GamePhase.IN_ROUND:
            raise WrongStateError(f"Cannot {what} during a round")
        if self.phase is GamePhase.ENDED:
            raise WrongStateError(f"Cannot {what} after the session has ended")

    def add_player(self, name: str, bankroll: float) -> Player:
        self._check_not_in_round("add players")
        player_id = str(uuid.uuid4())
        player = Player(name, Bank(player_id, bankroll), player_id, bankroll)
        self._players[player_id] = player
        logger.info("Player %s (%s) joined with %.2f", name, player_id, bankroll)
        self.emitter.emit(
            EventType.PLAYER_JOIN,
            {"player_id": player_id, "name": name, "bankroll": bankroll},
        )
        return player

    def remove_player(self, player_id: str) -> Player:
        self._check_not_in_round("remove players")
        player = self.get_player(player_id)
        del self._players[player_id]
        logger.info("Player %s left with %.2f", player.name, player.balance)
        self.emitter.emit(
            EventType.PLAYER_LEAVE,
            {"player_id": player_id, "name": player.name, "final_bankroll": player.balance},
        )
        return player

    def get_player(self, player_id: str) -> Player:
        try:
            return self._players[player_id]
        except KeyError:
            raise PlayerNotFoundError(f"Player {player_id} not found") from None

    @property
    def players(self) -> List[Player]:
        return list(self._players.values())

    # Rounds

    def start_round(self, bets: Sequence[BetSpec]) -> Round:
        """
        Take the bets and deal a new round.

        Args:
            bets: PlayerBet objects or dicts with "player_id" and "amount",
                one per seat, in seat order

        Returns:
            The new Round

        Raises:
            WrongStateError: If a round is still in progress
            PlayerNotFoundError: If a bet names an unknown player
            InvalidActionError: If a player takes more seats than the table allows
            InsufficientFundsError: If a player cannot cover their bets
            ValueError: If there are no bets or a bet is not positive
        """
        if self.phase is GamePhase.ROUND_COMPLETE:
            raise WrongStateError("Complete the current round before starting another")
        self._check_not_in_round("start a round")

        bets = [_coerce_bet(bet) for bet in bets]
        if not bets:
            raise ValueError("At least one bet is required")

        seats = Counter()
        player_info = []
        for bet in bets:
            player = self.get_player(bet.player_id)
            if bet.amount <= 0:
                raise ValueError(f"Invalid bet amount: {bet.amount}")
            seats[player.id] += 1
            if seats[player.id] > self.rules.max_playable_hands:
                raise InvalidActionError(
                    f"{player.name} may play at most "
                    f"{self.rules.max_playable_hands} hands"
                )
            player_info.append(PlayerRoundInfo(player.id, player.bank, bet.amount))

        if self.shoe.is_complete:
            logger.info("Shoe complete, replacing it before round %d", self._round_number + 1)
            self.shoe = self._new_shoe()

        round_number = self._round_number + 1
        self.emitter.set_context(self._session_id, round_number)
        self.emitter.emit(
            EventType.ROUND_START,
            {
                "player_count": len(seats),
                "hand_count": len(bets),
                "total_bets": sum(bet.amount for bet in bets),
            },
        )
        try:
            current = Round(
                round_number,
                player_info,
                self.shoe,
                self.rules,
                emitter=self.emitter,
                house=self.house,
            )
        except Exception:
            self.emitter.set_context(self._session_id, self._round_number)
            raise

        self._round_number = round_number
        self._current_round = current
        self.phase = GamePhase.IN_ROUND
        self._settle_if_ready()
        return current

    def _require_round(self) -> Round:
        if self._current_round is None:
            raise WrongStateError("No active round")
        return self._current_round

    def _settle_if_ready(self) -> None:
        current = self._current_round
        if current is None or current.state is not RoundState.SETTLING:
            return

        results = current.settle()
        self._record_round(current, results)
        self.phase = GamePhase.ROUND_COMPLETE

    def _record_round(self, current: Round, results: List[SettlementResult]) -> None:
        round_profit = sum(r.profit for r in results)
        # Insurance results are indexed by the hands as dealt, before any split
        round_profit += sum(
            ins.payout - ins.stake for ins in current.insurance_results if ins.had_insurance
        )
        self._round_profits.append(round_profit)
        self._hands_played += len(results)
        self._total_wagered += sum(r.bet_amount for r in results)
        self._outcomes.update(r.outcome.value for r in results)

    def get_current_round(self) -> Optional[Round]:
        return self._current_round

    def get_available_actions(self) -> List[Action]:
        if self._current_round is None:
            return []
        return self._current_round.get_available_actions()

    def play_action(self, action: Union[Action, str]) -> None:
        current = self._require_round()
        if self.phase is not GamePhase.IN_ROUND:
            raise WrongStateError("Cannot play an action, the round is over")
        current.play_action(action)
        self._settle_if_ready()

    def take_insurance(self, hand_index: int) -> float:
        return self._require_round().take_insurance(hand_index)

    def decline_insurance(self, hand_index: int) -> None:
        self._require_round().decline_insurance(hand_index)

    def resolve_insurance(self) -> InsuranceResolution:
        resolution = self._require_round().resolve_insurance()
        self._settle_if_ready()
        return resolution

    def settle_round(self) -> List[SettlementResult]:
        """
        Retry settlement of a round that is waiting to be settled.

        Rounds settle on their own once play is over. This is only needed
        when that failed because the house could not cover the payouts and
        the house has been funded since.

        Raises:
            WrongStateError: If the current round is not waiting to be settled
            InsufficientFundsError: If the house still cannot cover the payouts
        """
        current = self._require_round()
        if current.state is not RoundState.SETTLING:
            raise WrongStateError(f"Cannot settle in state {current.state.value}")
        self._settle_if_ready()
        return current.settlement_results

    def complete_round(self) -> List[SettlementResult]:
        """
        Clear the table after settlement.

        Returns:
            The settlement results of the round

        Raises:
            WrongStateError: If the round has not been settled
        """
        if self.phase is not GamePhase.ROUND_COMPLETE or self._current_round is None:
            raise WrongStateError("Round is not complete")

        current = self._current_round
        discarded = current.discard_cards()
        self.emitter.emit(
            EventType.ROUND_COMPLETE,
            {
                "total_payout": sum(r.payout for r in current.settlement_results),
                "player_profit": self._round_profits[-1],
                "cards_discarded": discarded,
            },
        )
        logger.info("Round %d complete", current.round_number)

        self._current_round = None
        self.phase = GamePhase.WAITING_FOR_BETS
        self.emitter.set_context(self._session_id, 0)
        return current.settlement_results

    # Session

    def end_session(self) -> SessionSummary:
        """
        End the session and summarize it.

        Raises:
            WrongStateError: If a round is still being played
        """
        if self.phase is GamePhase.IN_ROUND:
            raise WrongStateError("Cannot end the session during a round")
        if self.phase is GamePhase.ROUND_COMPLETE:
            self.complete_round()

        summary = self._summary()
        self.phase = GamePhase.ENDED
        logger.info(
            "Session %s ended after %d rounds, house result %.2f",
            self._session_id,
            summary.rounds_played,
            summary.house_profit_loss,
        )
        self.emitter.emit(EventType.SESSION_END, summary.to_dict())
        if self.audit_logger is not None:
            self.audit_logger.detach()
        return summary

    def _summary(self) -> SessionSummary:
        profits = np.array(self._round_profits, dtype=float)
        if profits.size:
            mean = float(np.mean(profits))
            std = float(np.std(profits))
        else:
            mean = std = 0.0

        return SessionSummary(
            session_id=self._session_id,
            rounds_played=len(self._round_profits),
            hands_played=self._hands_played,
            total_wagered=self._total_wagered,
            player_results={p.id: p.net_result for p in self._players.values()},
            house_profit_loss=self.house.profit_loss,
            house_balance=self.house.balance,
            mean_round_profit=mean,
            std_round_profit=std,
            outcomes=dict(self._outcomes),
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "round_number": self._round_number,
            "player_count": len(self._players),
            "house_profit": self.house.profit_loss,
            "house_bankroll": self.house.balance,
            "shoe_remaining_cards": self.shoe.remaining_cards,
            "shoe_complete": self.shoe.is_complete,
            "phase": self.phase.value,
            "hands_played": self._hands_played,
            "total_wagered": self._total_wagered,
        }

    def get_session_id(self) -> str:
        return self._session_id

    @property
    def round_number(self) -> int:
        return self._round_number

    @property
    def events(self) -> EventEmitter:
        return self.emitter

    @property
    def house_edge(self) -> float:
        return self.rules.house_edge

    def snapshot(self) -> GameSnapshot:
        """Return an immutable view of the session."""
        current = (
            RoundSnapshot.from_round(self._current_round)
            if self._current_round is not None
            else None
        )
        return GameSnapshot(
            session_id=self._session_id,
            players=tuple(
                PlayerSnapshot(p.id, p.name, p.balance) for p in self._players.values()
            ),
            house_balance=self.house.balance,
            house_profit_loss=self.house.profit_loss,
            rounds_played=len(self._round_profits),
            shoe_remaining=self.shoe.remaining_cards,
            shoe_complete=self.shoe.is_complete,
            rules=self.rules.to_dict(),
            current_round=current,
        )
