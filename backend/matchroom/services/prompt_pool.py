"""Prompt pool bookkeeping: low-water checks, dedup and replenishment.

A room keeps a FIFO pool of unused prompts and an append-only list of
prompts already shown. The two never overlap. Replenishment asks the
generator to avoid a bounded window of recent prompts (the full history
would blow past prompt-length limits), then re-filters everything it gets
back against the full history, the current pool and the batch so far.
Collisions are dropped, never substituted, so a batch may come back short.
"""

from typing import Iterable, List, Sequence, Tuple

from matchroom.errors import PromptPoolExhausted, UpstreamFailure


def needs_replenish(pool: Sequence[str], low_water: int) -> bool:
    return len(pool) <= low_water


def recent_window(prompts: Sequence[str], window: int) -> List[str]:
    if window <= 0:
        return []
    return list(prompts)[-window:]


def dedupe(candidates: Iterable[str], used: Iterable[str], pool: Iterable[str] = ()) -> List[str]:
    """Return candidates not in ``used`` or ``pool``, first occurrence wins."""
    seen = set(used) | set(pool)
    accepted = []
    for candidate in candidates:
        text = (candidate or '').strip()
        if not text or text in seen:
            continue
        seen.add(text)
        accepted.append(text)
    return accepted


def clean_pool(pool: Sequence[str], used: Sequence[str]) -> List[str]:
    """Drop pool entries that already appear in ``used`` (or twice in the pool)."""
    return dedupe(pool or [], used or [])


def pop_front(pool: Sequence[str], used: Sequence[str]) -> Tuple[str, List[str], List[str]]:
    """Take the first pool prompt and move it into the used list."""
    remaining = clean_pool(pool, used)
    if not remaining:
        raise PromptPoolExhausted('no unused prompt is available for this room')
    prompt = remaining[0]
    return prompt, remaining[1:], list(used) + [prompt]


def replenish(generator, used: Sequence[str], pool: Sequence[str], *, batch_size: int,
              exclude_window: int, max_attempts: int, logger=None) -> List[str]:
    """Ask ``generator`` for up to ``batch_size`` new prompts.

    Makes at most ``max_attempts`` calls. A failure after some prompts were
    accepted ends the loop with what was gathered; a failure before that
    propagates.
    """
    accepted: List[str] = []
    for attempt in range(1, max_attempts + 1):
        if len(accepted) >= batch_size:
            break
        exclude = recent_window(list(used) + accepted, exclude_window) + list(pool)
        try:
            candidates = generator.generate(set(exclude), batch_size - len(accepted))
        except UpstreamFailure as exc:
            if not accepted:
                raise
            if logger:
                logger.warning(f"[replenish] attempt={attempt} failed, keeping {len(accepted)} prompt(s): {exc}")
            break
        fresh = dedupe(candidates or [], list(used) + accepted, pool)[:batch_size - len(accepted)]
        accepted.extend(fresh)
        if logger:
            logger.info(f"[replenish] attempt={attempt} received={len(candidates or [])} accepted={len(fresh)} total={len(accepted)}")
    return accepted
