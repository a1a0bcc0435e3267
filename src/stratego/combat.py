"""Deterministic combat resolution: one fixed rank table, never random"""

from enum import StrEnum

from src.stratego.pieces import RANK_VALUES, Piece, Rank


class CombatResult(StrEnum):
    ATTACKER = "attacker"
    DEFENDER = "defender"
    BOTH_DESTROYED = "both_destroyed"


def resolve_combat(attacker: Piece, defender: Piece) -> CombatResult:
    """
    * attacking the Flag always wins (and ends the game)
    * only a Miner survives attacking a Bomb
    * the Spy beats the Marshal, but only as the attacker
    * otherwise the stronger rank (lower value) wins, equal ranks destroy each other
    """
    if defender.rank == Rank.FLAG:
        return CombatResult.ATTACKER
    if defender.rank == Rank.BOMB:
        return (
            CombatResult.ATTACKER
            if attacker.rank == Rank.MINER
            else CombatResult.DEFENDER
        )
    if attacker.rank == Rank.SPY and defender.rank == Rank.MARSHAL:
        return CombatResult.ATTACKER

    attacker_value = RANK_VALUES[attacker.rank]
    defender_value = RANK_VALUES[defender.rank]
    if attacker_value < defender_value:
        return CombatResult.ATTACKER
    if attacker_value > defender_value:
        return CombatResult.DEFENDER
    return CombatResult.BOTH_DESTROYED
