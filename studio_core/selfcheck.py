"""
studio_core.selfcheck
Minimal "it runs" proof for the core rules, without the engine layer.

Run:
  python -m studio_core.selfcheck
"""

from __future__ import annotations

from dataclasses import asdict, replace

from studio_content.catalog import DEFAULT_CATALOG

from .allocation import normalize_integer_allocations
from .balance import DEFAULT_GAME_CONFIG
from .effects import (
    apply_event_to_allocation,
    compute_capacity,
    materialize_event_effect,
    resolve_build,
    resolve_hype,
    resolve_milestones,
    resolve_morale,
    resolve_production,
    roll_event,
    stability_score,
)
from .rng import rng_from_state, xorshift32
from .state import create_initial_state


def run_smoke(weeks: int = 12) -> None:
    cfg = DEFAULT_GAME_CONFIG
    catalog = DEFAULT_CATALOG
    focus = catalog.focus_cards[0]
    management = catalog.management_cards[0]

    assert xorshift32(1) == 270369

    state = create_initial_state(
        cfg,
        2019,
        focus_card_id=focus.id,
        management_card_id=management.id,
        cooldown_keys=catalog.cooldown_keys(),
        now_iso="2000-01-01T00:00:00.000Z",
    )

    for _ in range(weeks):
        rng = rng_from_state(state.meta.rng_state)
        cap = compute_capacity(state, management, cfg)
        lanes = {"feature": cap.cp_effective * 0.4, "refactor": cap.cp_effective * 0.2,
                 "marketing": cap.cp_effective * 0.2, "qa": cap.cp_effective * 0.2}
        alloc = normalize_integer_allocations(lanes, cap.cp_effective)
        assert alloc.total() <= cap.cp_effective

        roll = roll_event(state, rng, catalog.events, cfg)
        effect = materialize_event_effect("reject", roll.event)
        cp, alloc = apply_event_to_allocation(alloc, cap.cp_effective, effect)

        prod = resolve_production(state, alloc, cp, focus, management, effect, cfg)
        ms = resolve_milestones(state.project.milestones_reached, prod.completion, prod.bug_backlog, catalog.milestones)
        hype = resolve_hype(state.market.hype, alloc.marketing, focus, ms.hype_bonus, effect, cfg)
        build = resolve_build(stability_score(prod.tech_debt, prod.bug_backlog, prod.qa_share, cfg), rng, cfg)
        morale = resolve_morale(state, focus, management, ms.morale_bonus, effect, build.result, cfg).morale

        state = replace(
            state,
            meta=replace(state.meta, rng_state=rng.get_state()),
            run=replace(state.run, week=state.run.week + 1),
            resources=replace(
                state.resources,
                cash=state.resources.cash - state.resources.weekly_burn,
                morale=morale,
            ),
            project=replace(
                state.project,
                scope_target=prod.scope_target + build.ghost_tasks * cfg.stability.ghost_task_scope,
                completion=prod.completion,
                quality=prod.quality,
                milestones_reached=ms.milestones_reached,
            ),
            entropy=replace(state.entropy, tech_debt=prod.tech_debt, bug_backlog=prod.bug_backlog),
            market=replace(state.market, hype=hype),
        )

        # invariants
        r = cfg.ranges
        assert r.morale_min <= state.resources.morale <= r.morale_max
        assert r.debt_min <= state.entropy.tech_debt <= r.debt_max
        assert r.quality_min <= state.project.quality <= r.quality_max
        assert r.hype_min <= state.market.hype <= r.hype_max
        assert state.entropy.bug_backlog >= 0
        assert state.project.completion <= state.project.scope_target
        assert 1 <= state.meta.rng_state <= 0xFFFFFFFF

    print(f"OK: {weeks}-week core smoke test passed.")
    print("Final project:", asdict(state.project))
    print("Final entropy:", asdict(state.entropy))


if __name__ == "__main__":
    run_smoke()
