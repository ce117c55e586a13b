"""
Player finance operations: tax policy, loans, shares and land research.

Every operation takes a stats record and returns a new one, or raises
``TreasuryError`` when the move is refused. None of them touch the grid;
the engine runs them inside ``CityEngine.transact``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from axiom.core.stats import CityStats

if TYPE_CHECKING:
    from axiom.core.config import SimulationConfig


class TreasuryError(ValueError):
    """A finance operation was refused (insufficient funds, nothing to repay...)."""


def cycle_tax(stats: CityStats, config: SimulationConfig) -> CityStats:
    """Advance the tax rate to the next step of ``config.tax_cycle``.

    A rate that is not on the cycle resets to the middle step.
    """
    cycle = list(config.tax_cycle)
    new = stats.copy()
    matches = [i for i, rate in enumerate(cycle) if abs(rate - stats.tax_rate) < 1e-9]
    if matches:
        new.tax_rate = cycle[(matches[0] + 1) % len(cycle)]
    else:
        new.tax_rate = cycle[len(cycle) // 2]
    return new


def take_loan(stats: CityStats, config: SimulationConfig) -> CityStats:
    new = stats.copy()
    new.money += config.loan_amount
    new.loan_principal += config.loan_amount
    return new


def repay_loan(stats: CityStats, config: SimulationConfig) -> CityStats:
    """Repay up to one loan's worth, limited by cash on hand and principal."""
    amount = min(stats.money, stats.loan_principal, config.loan_amount)
    if amount <= 0:
        raise TreasuryError("Nothing to repay, or no cash to repay with")
    new = stats.copy()
    new.money -= amount
    new.loan_principal -= amount
    return new


def buy_shares(stats: CityStats, config: SimulationConfig) -> CityStats:
    """Buy one lot at the current share price, updating the average cost."""
    lot = config.share_lot_size
    cost = stats.share_price * lot
    if stats.money < cost:
        raise TreasuryError(f"A lot of {lot} shares costs {cost}; treasury holds {stats.money}")
    new = stats.copy()
    total_value = stats.investment_shares * stats.investment_average_cost + cost
    new.money -= cost
    new.investment_shares += lot
    new.investment_average_cost = total_value / new.investment_shares
    return new


def sell_shares(stats: CityStats, config: SimulationConfig) -> CityStats:
    lot = config.share_lot_size
    if stats.investment_shares < lot:
        raise TreasuryError(f"Need at least {lot} shares to sell, holding {stats.investment_shares}")
    new = stats.copy()
    new.money += stats.share_price * lot
    new.investment_shares -= lot
    if new.investment_shares == 0:
        new.investment_average_cost = 0.0
    return new


def land_expansion_cost(stats: CityStats, config: SimulationConfig) -> int:
    return config.land_expansion_base_cost * (1 + stats.land_expansion_level)


def expand_land(stats: CityStats, config: SimulationConfig) -> CityStats:
    """Research land expansion: grow the unlocked square by one step.

    Requires a Research Centre and enough money; the square never grows
    past the grid.
    """
    if not stats.research_centre_built:
        raise TreasuryError("Land research requires a Research Centre")
    if stats.unlocked_grid_size >= config.grid_size:
        raise TreasuryError("All land is already unlocked")
    cost = land_expansion_cost(stats, config)
    if stats.money < cost:
        raise TreasuryError(f"Land expansion costs {cost}; treasury holds {stats.money}")
    new = stats.copy()
    new.money -= cost
    new.unlocked_grid_size = min(config.grid_size, stats.unlocked_grid_size + config.land_expansion_step)
    new.land_expansion_level += 1
    return new
