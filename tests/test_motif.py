from __future__ import annotations

from ambientseed.motif import Motif, generate_motif
from ambientseed.rng import SeededRNG


def test_generate_walks_single_steps(scripted) -> None:
    rng = scripted(0.1, 0.5, 0.1, 0.5, 0.1, 0.5, 0.9)
    assert generate_motif(rng).intervals == [0, 1, 2, 3]
    assert rng.remaining == 0


def test_generate_clamps_the_walker(scripted) -> None:
    rng = scripted(0.1, 0.1, 0.1, 0.1, 0.1, 0.1, 0.9)
    assert generate_motif(rng).intervals == [0, 2, 4, 4]


def test_generate_may_invert(scripted) -> None:
    rng = scripted(0.1, 0.5, 0.9, 0.5, 0.1, 0.5, 0.2)
    assert generate_motif(rng).intervals == [0, -1, 0, -1]


def test_generated_motifs_stay_in_range() -> None:
    rng = SeededRNG(7)
    for _ in range(500):
        motif = generate_motif(rng)
        assert len(motif) == 4
        assert motif.intervals[0] == 0
        assert all(-4 <= value <= 4 for value in motif.intervals)


def test_next_interval_is_round_robin() -> None:
    motif = Motif(intervals=[0, 1, -1, 2])
    assert [motif.next_interval() for _ in range(6)] == [0, 1, -1, 2, 0, 1]
    assert motif.cursor == 2


def test_evolves_only_every_eighth_phrase(scripted) -> None:
    motif = Motif(intervals=[0, 1, 2, 3])
    for count in (0, 1, 7, 9, 15):
        assert motif.maybe_evolve(count, scripted()) is False

    rng = scripted(0.99, 0.2)
    assert motif.maybe_evolve(8, rng) is True
    assert motif.intervals == [0, 1, 2, 2]
    assert rng.remaining == 0


def test_evolution_never_touches_the_root(scripted) -> None:
    motif = Motif(intervals=[0, 1, 2, 3])
    motif.maybe_evolve(16, scripted(0.0, 0.9))
    assert motif.intervals == [0, 2, 2, 3]


def test_evolution_clamps(scripted) -> None:
    motif = Motif(intervals=[0, 1, 2, 4])
    assert motif.maybe_evolve(24, scripted(0.99, 0.9)) is True
    assert motif.intervals == [0, 1, 2, 4]


def test_short_motifs_do_not_evolve(scripted) -> None:
    motif = Motif(intervals=[0, 1])
    assert motif.maybe_evolve(8, scripted()) is False


def test_copy_is_independent() -> None:
    motif = Motif(intervals=[0, 1, 2, 3], cursor=1)
    twin = motif.copy()
    twin.intervals[1] = -4
    twin.next_interval()
    assert motif.intervals == [0, 1, 2, 3]
    assert motif.cursor == 1
    assert motif.snapshot() == (0, 1, 2, 3)
