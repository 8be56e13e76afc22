"""First-success strategy engine.

Stages with more than one way of doing their job (install with bun or
npm, bundle with bun or esbuild) describe each way as a Strategy and let
run_strategies() walk the list. The walk stops at the first success and
otherwise carries every attempt forward for diagnostics.
"""

import logging
from typing import Sequence

from bundler.execution.strategy_types import Strategy, StrategyOutcome

logger = logging.getLogger(__name__)


async def run_strategies(stage: str, strategies: Sequence[Strategy]) -> StrategyOutcome:
    """Run strategies in order until one succeeds."""
    outcome = StrategyOutcome()

    for index, strategy in enumerate(strategies, start=1):
        if strategy.available is not None and not await strategy.available():
            logger.info("%s: strategy '%s' unavailable, skipping", stage, strategy.name)
            outcome.skipped.append(strategy.name)
            continue

        logger.info(
            "%s: strategy %d/%d '%s'",
            stage, index, len(strategies), strategy.name,
        )
        result = await strategy.run()
        outcome.attempts.append(result)
        if result.is_success:
            outcome.succeeded = True
            outcome.strategy = strategy.name
            outcome.result = result
            return outcome

        logger.warning(
            "%s: strategy '%s' failed (exit=%d%s)",
            stage,
            strategy.name,
            result.exit_code,
            ", timed out" if result.timed_out else "",
        )

    outcome.result = outcome.last_failure
    if outcome.attempts:
        logger.warning("%s: all %d attempted strategies failed", stage, len(outcome.attempts))
    else:
        logger.warning("%s: no strategy was available", stage)
    return outcome
