"""
Table rules for blackjack.

`RuleSet` is an immutable description of a table: deck count, dealer
behaviour, payouts, and which player options are allowed. It is built with
`RuleSetBuilder` (or taken from `PRESETS`) once per table and never changes
during play. Besides storing the settings it answers the rule questions the
round asks: may this hand double, split or surrender, and must the dealer hit.

`house_edge` is an estimate derived from the settings: a 0.41% baseline for
six decks, S17, DAS, no surrender and 3:2 naturals, adjusted additively for
each deviation.
"""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Tuple, Union

from cutcard.blackjack.hand import PlayerHand
from cutcard.common.card import Rank


class DealerStand(Enum):
    """Whether the dealer stands on all 17s or hits soft 17."""

    S17 = "s17"
    H17 = "h17"


class Surrender(Enum):
    NONE = "none"
    LATE = "late"
    EARLY = "early"


class DoubleRestriction(Enum):
    """Two-card totals on which doubling is allowed."""

    ANY = "any"
    NINE_TO_ELEVEN = "9-11"
    TEN_OR_ELEVEN = "10-11"
    ELEVEN = "11"

    @property
    def totals(self):
        """Allowed totals, or None when any total may be doubled."""
        return _DOUBLE_TOTALS[self]


_DOUBLE_TOTALS = {
    DoubleRestriction.ANY: None,
    DoubleRestriction.NINE_TO_ELEVEN: frozenset({9, 10, 11}),
    DoubleRestriction.TEN_OR_ELEVEN: frozenset({10, 11}),
    DoubleRestriction.ELEVEN: frozenset({11}),
}

SUPPORTED_DECK_COUNTS = (1, 2, 4, 6, 8)


@dataclass(frozen=True)
class RuleSet:
    """
    Immutable table configuration.

    Attributes:
        deck_count: Number of decks in the shoe
        dealer_stand: S17 or H17
        blackjack_payout: Natural payout as (numerator, denominator), e.g. (3, 2)
        surrender: none, late or early
        double_restriction: Totals on which a two-card hand may double
        double_after_split: Whether split hands may double
        max_splits: Maximum number of splits per original hand
        resplit_aces: Whether a pair of aces from a split may be split again
        hit_split_aces: Whether split aces may take more than one card
        max_playable_hands: Most seats one player may bet in a round
        dealer_peek: Whether the dealer checks a ten up-card for blackjack
        insurance_payout: Insurance win multiplier (2.0 for 2:1)
    """

    deck_count: int = 6
    dealer_stand: DealerStand = DealerStand.S17
    blackjack_payout: Tuple[int, int] = (3, 2)
    surrender: Surrender = Surrender.NONE
    double_restriction: DoubleRestriction = DoubleRestriction.ANY
    double_after_split: bool = True
    max_splits: int = 3
    resplit_aces: bool = False
    hit_split_aces: bool = False
    max_playable_hands: int = 3
    dealer_peek: bool = True
    insurance_payout: float = 2.0

    def __post_init__(self):
        object.__setattr__(self, "dealer_stand", _coerce(DealerStand, self.dealer_stand))
        object.__setattr__(self, "surrender", _coerce(Surrender, self.surrender))
        object.__setattr__(
            self,
            "double_restriction",
            _coerce(DoubleRestriction, self.double_restriction),
        )
        object.__setattr__(self, "blackjack_payout", tuple(self.blackjack_payout))
        if self.deck_count < 1:
            raise ValueError("Deck count must be at least 1")
        numerator, denominator = self.blackjack_payout
        if numerator <= 0 or denominator <= 0:
            raise ValueError("Blackjack payout terms must be positive")
        if self.max_splits < 0:
            raise ValueError("Maximum splits must be non-negative")
        if self.max_playable_hands < 1:
            raise ValueError("Maximum playable hands must be at least 1")
        if self.insurance_payout <= 0:
            raise ValueError("Insurance payout must be positive")

    @property
    def house_edge(self) -> float:
        return calculate_house_edge(self)

    @property
    def blackjack_payout_ratio(self) -> float:
        numerator, denominator = self.blackjack_payout
        return numerator / denominator

    def blackjack_winnings(self, bet: float) -> float:
        """Winnings (excluding the returned stake) for a natural on `bet`."""
        numerator, denominator = self.blackjack_payout
        return bet * numerator / denominator

    def should_dealer_hit(self, total: int, is_soft: bool) -> bool:
        """Determine if the dealer should hit based on the game rules."""
        if total < 17:
            return True
        return total == 17 and is_soft and self.dealer_stand is DealerStand.H17

    def can_double(self, hand: PlayerHand) -> bool:
        """
        Check whether the rules let this hand double down.

        Only the first decision on a two-card hand qualifies, the total must
        satisfy the double restriction, and split hands need DAS. Split aces
        never double. Funds are not considered here.
        """
        if len(hand.cards) != 2 or hand.actions_taken:
            return False
        if hand.is_split_ace:
            return False
        if hand.is_split and not self.double_after_split:
            return False
        totals = self.double_restriction.totals
        return totals is None or hand.value in totals

    def can_split(self, hand: PlayerHand) -> bool:
        """
        Check whether the rules let this hand split.

        Args:
            hand: The player's hand.

        Returns:
            True for a two-card pair of equal rank below the split limit. A
            pair of aces that came from a split also needs resplit_aces.
        """
        if not hand.is_pair:
            return False
        if hand.split_count >= self.max_splits:
            return False
        if hand.cards[0].rank is Rank.ACE and hand.split_count > 0:
            return self.resplit_aces
        return True

    def can_surrender(self, hand: PlayerHand) -> bool:
        """Surrender is only the very first decision on an unsplit hand."""
        if self.surrender is Surrender.NONE:
            return False
        return len(hand.cards) == 2 and not hand.is_split and not hand.actions_taken

    def can_hit(self, hand: PlayerHand) -> bool:
        return not hand.is_split_ace or self.hit_split_aces

    def describe(self) -> str:
        """Short human summary, e.g. "S17, 6 decks, DAS, LS, BJ 3:2"."""
        parts = [
            self.dealer_stand.value.upper(),
            f"{self.deck_count} deck{'s' if self.deck_count > 1 else ''}",
            "DAS" if self.double_after_split else "No DAS",
        ]
        if self.surrender is Surrender.EARLY:
            parts.append("ES")
        elif self.surrender is Surrender.LATE:
            parts.append("LS")
        if self.double_restriction is not DoubleRestriction.ANY:
            parts.append(f"D{self.double_restriction.value}")
        if self.resplit_aces:
            parts.append("RSA")
        numerator, denominator = self.blackjack_payout
        parts.append(f"BJ {numerator}:{denominator}")
        return ", ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert rules to a dictionary for serialization."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        data["blackjack_payout"] = list(self.blackjack_payout)
        data["house_edge"] = self.house_edge
        return data


def calculate_house_edge(rules: RuleSet) -> float:
    """
    Estimate the house edge, in percent, for a rule set.

    Starts from 0.41% (6 decks, S17, DAS, peek, no surrender, 3:2) and adds
    the approximate effect of each deviation. The result is floored at zero.
    """
    edge = 0.41

    edge += {1: -0.46, 2: -0.17, 4: -0.04, 6: 0.0, 8: 0.02}.get(rules.deck_count, 0.0)

    if rules.dealer_stand is DealerStand.H17:
        edge += 0.22
    if not rules.dealer_peek:
        edge += 0.11
    if not rules.double_after_split:
        edge += 0.14

    edge += {
        DoubleRestriction.ANY: 0.0,
        DoubleRestriction.NINE_TO_ELEVEN: 0.01,
        DoubleRestriction.TEN_OR_ELEVEN: 0.09,
        DoubleRestriction.ELEVEN: 0.45,
    }[rules.double_restriction]

    if rules.resplit_aces:
        edge -= 0.08
    if rules.hit_split_aces:
        edge -= 0.19
    if rules.max_splits == 1:
        edge += 0.03
    elif rules.max_splits == 2:
        edge += 0.01

    if rules.surrender is Surrender.EARLY:
        edge -= 0.62
    elif rules.surrender is Surrender.LATE:
        edge -= 0.08

    ratio = rules.blackjack_payout_ratio
    if abs(ratio - 1.2) < 1e-9:
        edge += 1.39
    elif abs(ratio - 1.0) < 1e-9:
        edge += 2.27

    return max(0.0, round(edge, 4))


class RuleSetBuilder:
    """
    Fluent builder for `RuleSet`.

    Starts from the default rules; every setter validates its value and
    returns the builder.

    >>> rules = (
    ...     RuleSetBuilder()
    ...     .set_dealer_stand("s17")
    ...     .set_deck_count(6)
    ...     .set_blackjack_payout(3, 2)
    ...     .set_surrender("late")
    ...     .build()
    ... )
    >>> rules.describe()
    'S17, 6 decks, DAS, LS, BJ 3:2'
    """

    def __init__(self, base: RuleSet = None):
        self._rules = base or RuleSet()

    def _set(self, **changes) -> "RuleSetBuilder":
        self._rules = replace(self._rules, **changes)
        return self

    def set_deck_count(self, count: int) -> "RuleSetBuilder":
        if count not in SUPPORTED_DECK_COUNTS:
            raise ValueError(
                f"Deck count must be one of {SUPPORTED_DECK_COUNTS}, got {count}"
            )
        return self._set(deck_count=count)

    def set_dealer_stand(self, variant: Union[DealerStand, str]) -> "RuleSetBuilder":
        return self._set(dealer_stand=_coerce(DealerStand, variant))

    def set_blackjack_payout(self, numerator: int, denominator: int) -> "RuleSetBuilder":
        """
        Set blackjack payout ratio.

        :param numerator: Payout numerator (e.g., 3 for 3:2)
        :param denominator: Payout denominator (e.g., 2 for 3:2)
        """
        return self._set(blackjack_payout=(numerator, denominator))

    def set_surrender(self, variant: Union[Surrender, str]) -> "RuleSetBuilder":
        return self._set(surrender=_coerce(Surrender, variant))

    def set_double_restriction(
        self, restriction: Union[DoubleRestriction, str]
    ) -> "RuleSetBuilder":
        return self._set(double_restriction=_coerce(DoubleRestriction, restriction))

    def set_double_after_split(self, allowed: bool) -> "RuleSetBuilder":
        return self._set(double_after_split=bool(allowed))

    def set_max_splits(self, times: int) -> "RuleSetBuilder":
        return self._set(max_splits=times)

    def set_resplit_aces(self, allowed: bool) -> "RuleSetBuilder":
        return self._set(resplit_aces=bool(allowed))

    def set_hit_split_aces(self, allowed: bool) -> "RuleSetBuilder":
        return self._set(hit_split_aces=bool(allowed))

    def set_max_playable_hands(self, hands: int) -> "RuleSetBuilder":
        return self._set(max_playable_hands=hands)

    def set_dealer_peek(self, allowed: bool) -> "RuleSetBuilder":
        return self._set(dealer_peek=bool(allowed))

    def reset(self) -> "RuleSetBuilder":
        """Reset all rules to defaults."""
        self._rules = RuleSet()
        return self

    def build(self) -> RuleSet:
        return self._rules


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(
            f"Invalid {enum_cls.__name__} {value!r}; expected one of: {choices}"
        ) from None


# Common casino rule sets.
PRESETS: Dict[str, Callable[[], RuleSet]] = {
    # Liberal Strip: S17, 4 decks, late surrender, resplit aces (~0.21%)
    "liberal": lambda: RuleSetBuilder()
    .set_dealer_stand("s17")
    .set_deck_count(4)
    .set_surrender("late")
    .set_resplit_aces(True)
    .build(),
    # Standard Strip: S17, 4 decks, late surrender (~0.29%)
    "vegas_strip": lambda: RuleSetBuilder()
    .set_dealer_stand("s17")
    .set_deck_count(4)
    .set_surrender("late")
    .build(),
    # Atlantic City: S17, 8 decks, late surrender (~0.35%)
    "atlantic_city": lambda: RuleSetBuilder()
    .set_dealer_stand("s17")
    .set_deck_count(8)
    .set_surrender("late")
    .build(),
    # Downtown: H17, 2 decks (~0.46%)
    "downtown": lambda: RuleSetBuilder().set_dealer_stand("h17").set_deck_count(2).build(),
    # Single deck: H17, double 10-11 only, no DAS (~0.40%)
    "single_deck": lambda: RuleSetBuilder()
    .set_dealer_stand("h17")
    .set_deck_count(1)
    .set_double_restriction("10-11")
    .set_double_after_split(False)
    .build(),
    # 6:5 shoe game: H17, 8 decks (~2.04%)
    "six_five": lambda: RuleSetBuilder()
    .set_dealer_stand("h17")
    .set_deck_count(8)
    .set_blackjack_payout(6, 5)
    .set_surrender("none")
    .build(),
}


def preset(name: str) -> RuleSet:
    """
    Look up a preset rule set by name.

    :raises ValueError: If no preset has that name.
    """
    try:
        return PRESETS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown preset {name!r}; available: {', '.join(sorted(PRESETS))}"
        ) from None
