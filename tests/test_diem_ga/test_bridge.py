"""
Tests for the boundary allocator, the search engine and the solve entry points.
"""

import time
import unittest
from concurrent.futures import ThreadPoolExecutor

from diem_ga.bridge import diem_free, diem_solve, solve, solve_to_bytes
from diem_ga.data_models import FitnessValue
from diem_ga.engine import run_search
from diem_ga.io_utils import decode_result
from diem_ga.memory import BoundaryAllocator, BoundaryProtocolError
from diem_ga.termination import TerminationState

from helpers import activity, build, pack, problem_dict

SMALL_GA = {'population_size': 16, 'max_stale_generations': None}


def single_activity_problem():
    return problem_dict([activity(0, duration=4, priority=1.0)], total_slots=96)


def unsatisfiable_problem():
    return problem_dict(
        [activity(0, "Fixed", duration=4, assigned_start=10), activity(1, duration=2, priority=1.0)],
        total_slots=96,
        global_constraints=[{'ForbiddenZone': {'start': 8, 'end': 16}}],
    )


def week_problem():
    activities = [
        activity(i, duration=1 + i % 5, priority=float(i % 3),
                 frequency_targets=[{'scope': 'SameDay', 'target_count': 2, 'weight': 1.0}])
        for i in range(10)
    ]
    activities.append(activity(10, "Fixed", duration=8, assigned_start=100))
    zones = [{'ForbiddenZone': {'start': d * 96, 'end': d * 96 + 28}} for d in range(7)]
    return problem_dict(activities, total_slots=672, global_constraints=zones,
                        markov_matrix=[[0, 1, 1.0], [2, 3, 0.5]])


class TestBoundaryAllocator(unittest.TestCase):
    """Test allocation protocol enforcement."""

    def setUp(self):
        self.allocator = BoundaryAllocator()

    def test_allocate_write_read_release(self):
        handle = self.allocator.allocate(4)
        self.allocator.buffer(handle)[:] = b"abcd"

        self.assertEqual(self.allocator.read(handle), b"abcd")
        self.allocator.release(handle, 4)

        self.assertEqual(self.allocator.allocations, 1)
        self.assertEqual(self.allocator.releases, 1)
        self.assertEqual(self.allocator.live_handles, 0)

    def test_zero_size_rejected(self):
        with self.assertRaises(ValueError):
            self.allocator.allocate(0)

    def test_double_release(self):
        handle = self.allocator.allocate(8)
        self.allocator.release(handle, 8)
        with self.assertRaisesRegex(BoundaryProtocolError, "already released"):
            self.allocator.release(handle, 8)

    def test_unknown_handle(self):
        with self.assertRaisesRegex(BoundaryProtocolError, "never allocated"):
            self.allocator.release(12345, 8)

    def test_size_mismatch_keeps_buffer(self):
        handle = self.allocator.allocate(8)
        with self.assertRaises(BoundaryProtocolError):
            self.allocator.release(handle, 7)
        self.assertEqual(self.allocator.live_handles, 1)
        self.allocator.release(handle, 8)

    def test_read_after_release(self):
        handle = self.allocator.allocate(2)
        self.allocator.release(handle, 2)
        with self.assertRaises(BoundaryProtocolError):
            self.allocator.read(handle)

    def test_handles_unique(self):
        handles = {self.allocator.allocate(1) for _ in range(50)}
        self.assertEqual(len(handles), 50)

    def test_released_handles_leave_no_bookkeeping(self):
        first = self.allocator.allocate(4)
        self.allocator.release(first, 4)
        for _ in range(1000):
            self.allocator.release(self.allocator.allocate(4), 4)

        containers = [v for v in vars(self.allocator).values() if isinstance(v, (dict, set, list))]
        self.assertTrue(all(len(container) == 0 for container in containers))

        with self.assertRaisesRegex(BoundaryProtocolError, "already released"):
            self.allocator.release(first, 4)
        with self.assertRaisesRegex(BoundaryProtocolError, "never allocated"):
            self.allocator.release(first + 1001, 4)
        with self.assertRaisesRegex(BoundaryProtocolError, "never allocated"):
            self.allocator.release(0, 4)


class TestSearchEngine(unittest.TestCase):
    """Test the generational loop through its introspection hook."""

    def setUp(self):
        self.problem = build(week_problem())
        self.reports = []

    def _run(self, max_generations, time_limit_ms, config=SMALL_GA, **kwargs):
        return run_search(
            self.problem, max_generations, time_limit_ms,
            config=config, seed=3, on_generation=self.reports.append, **kwargs
        )

    def test_population_size_constant(self):
        outcome = self._run(8, 60_000)

        self.assertEqual(outcome.generations, 8)
        self.assertEqual([r.generation for r in self.reports], list(range(9)))
        self.assertTrue(all(r.population_size == 16 for r in self.reports))

    def test_best_never_regresses(self):
        outcome = self._run(12, 60_000)

        for previous, current in zip(outcome.history, outcome.history[1:]):
            self.assertFalse(previous.better_than(current))
        for report in self.reports:
            self.assertFalse(report.population_best.better_than(report.best_fitness))

    def test_one_generation(self):
        outcome = self._run(1, 60_000)

        self.assertEqual(outcome.generations, 1)
        self.assertEqual(len(self.reports), 2)
        self.assertIs(outcome.termination, TerminationState.GENERATION_LIMIT_REACHED)

    def test_zero_time_limit_only_seeds(self):
        outcome = self._run(100, 0)

        self.assertEqual(outcome.generations, 0)
        self.assertIs(outcome.termination, TerminationState.TIME_LIMIT_REACHED)
        self.assertEqual(len(self.reports), 1)
        self.assertEqual(outcome.best.fitness.sort_key, self.reports[0].population_best.sort_key)

    def test_zero_generations_wins_over_zero_time(self):
        outcome = self._run(0, 0)
        self.assertIs(outcome.termination, TerminationState.GENERATION_LIMIT_REACHED)

    def test_time_limit_with_fake_clock(self):
        """Each clock read costs 1 ms, so the 5 ms budget stops the run early."""
        ticks = iter(range(10_000))
        outcome = self._run(1000, 5, clock=lambda: next(ticks) / 1000.0)

        self.assertIs(outcome.termination, TerminationState.TIME_LIMIT_REACHED)
        self.assertLess(outcome.generations, 5)

    def test_time_spent_during_seeding(self):
        """With 1 ms per clock read a 3 ms budget runs out before the third seed."""
        ticks = iter(range(10_000))
        outcome = self._run(1000, 3, clock=lambda: next(ticks) / 1000.0)

        self.assertIs(outcome.termination, TerminationState.TIME_LIMIT_REACHED)
        self.assertEqual(outcome.generations, 0)
        self.assertEqual(len(self.reports), 1)
        self.assertEqual(self.reports[0].population_size, 16)

    def test_stale_limit(self):
        outcome = self._run(10_000, 600_000, config={'population_size': 8, 'max_stale_generations': 3})

        self.assertIs(outcome.termination, TerminationState.STALE_LIMIT_REACHED)
        self.assertLess(outcome.generations, 10_000)

    def test_seeded_best_is_feasible(self):
        """The greedy seed keeps a feasible schedule in play from generation 0."""
        outcome = self._run(3, 60_000)
        self.assertTrue(outcome.best.feasible)

    def test_no_floating_activities(self):
        problem = build(problem_dict([activity(0, "Fixed", duration=2, assigned_start=0)]))
        outcome = run_search(problem, 10, 1000)

        self.assertFalse(outcome.seeded)
        self.assertIsNone(outcome.best)

    def test_no_candidate_slots(self):
        problem = build(problem_dict(
            [activity(0)], total_slots=10,
            global_constraints=[{'ForbiddenZone': {'start': 0, 'end': 10}}],
        ))
        self.assertFalse(run_search(problem, 10, 1000).seeded)


class TestSolveBoundary(unittest.TestCase):
    """End-to-end tests through diem_solve / diem_free."""

    def setUp(self):
        self.allocator = BoundaryAllocator()

    def test_empty_input(self):
        result = diem_solve(b"", 10, 1000, self.allocator)

        self.assertEqual(result.length, 0)
        self.assertIsNone(result.handle)
        self.assertEqual(self.allocator.allocations, 0)

    def test_garbage_input(self):
        with self.assertLogs('diem_ga.decoder', level='WARNING'):
            result = diem_solve(b"\x93\x01", 10, 1000, self.allocator)
        self.assertEqual(result.length, 0)
        self.assertEqual(self.allocator.allocations, 0)

    def test_single_activity(self):
        handle, length = diem_solve(pack(single_activity_problem()), 10, 1000, self.allocator, config=SMALL_GA)

        self.assertGreater(length, 0)
        data = self.allocator.read(handle)
        diem_free(self.allocator, handle, length)

        result = decode_result(data)
        self.assertEqual(result['version'], 1)
        self.assertTrue(result['feasible'])
        self.assertGreater(len(result['assignments']), 0)
        for activity_id, start in result['assignments']:
            self.assertEqual(activity_id, 0)
            self.assertTrue(0 <= start <= 92)
        starts = [start for _, start in result['assignments']]
        self.assertEqual(starts, sorted(starts))

    def test_unsatisfiable_problem(self):
        data = solve(pack(unsatisfiable_problem()), 5, 60_000, config=SMALL_GA, allocator=self.allocator)
        result = decode_result(data)

        self.assertGreater(len(data), 0)
        self.assertFalse(result['feasible'])
        self.assertGreater(result['violation'], 0)

    def test_zero_weight_bound_reported_infeasible(self):
        """Two slots can never hold three occurrences, whatever the bound's weight."""
        constraint = {'scope': 'SameDay', 'min_count': 3, 'penalty_weight': 0.0}
        problem = problem_dict([activity(0, user_frequency_constraints=[constraint])], total_slots=2)

        result = decode_result(solve(pack(problem), 5, 60_000, config=SMALL_GA))

        self.assertFalse(result['feasible'])
        self.assertEqual(result['violation'], 0.0)

    def test_nothing_to_place(self):
        problem = problem_dict([activity(0, "Fixed", duration=2, assigned_start=0)])
        self.assertEqual(solve(pack(problem), 10, 1000), b"")

    def test_long_horizon_respects_time_limit(self):
        """A 1 ms budget on a near-maximal horizon returns as soon as seeding notices it."""
        activities = [activity(i, duration=1 + i % 6, priority=float(i % 4)) for i in range(200)]
        problem_bytes = pack(problem_dict(activities, total_slots=65535))

        begin = time.monotonic()
        data = solve(problem_bytes, 1_000_000, 1)
        elapsed = time.monotonic() - begin

        self.assertGreater(len(data), 0)
        self.assertLess(elapsed, 2.0)

    def test_deterministic_under_seed(self):
        problem_bytes = pack(week_problem())
        first = solve(problem_bytes, 15, 600_000, config=SMALL_GA, seed=99)
        second = solve(problem_bytes, 15, 600_000, config=SMALL_GA, seed=99)
        self.assertEqual(first, second)

    def test_allocation_release_pairing(self):
        problem_bytes = pack(single_activity_problem())
        for seed in range(5):
            solve(problem_bytes, 3, 1000, config=SMALL_GA, seed=seed, allocator=self.allocator)
        solve(b"", 3, 1000, allocator=self.allocator)

        self.assertEqual(self.allocator.allocations, 5)
        self.assertEqual(self.allocator.releases, 5)
        self.assertEqual(self.allocator.live_handles, 0)

    def test_result_matches_solve_to_bytes(self):
        problem_bytes = pack(single_activity_problem())
        handle, length = diem_solve(problem_bytes, 4, 60_000, self.allocator, config=SMALL_GA, seed=1)
        try:
            self.assertEqual(
                self.allocator.read(handle),
                solve_to_bytes(problem_bytes, 4, 60_000, config=SMALL_GA, seed=1),
            )
        finally:
            diem_free(self.allocator, handle, length)

    def test_negative_budget(self):
        with self.assertRaises(ValueError):
            diem_solve(pack(single_activity_problem()), -1, 1000, self.allocator)
        with self.assertRaises(ValueError):
            solve(b"", 1, -5)

    def test_fill_failure_releases_buffer(self):
        class FailingAllocator(BoundaryAllocator):
            def buffer(self, handle):
                raise MemoryError("cannot map buffer")

        allocator = FailingAllocator()
        with self.assertRaises(MemoryError):
            diem_solve(pack(single_activity_problem()), 2, 1000, allocator, config=SMALL_GA)

        self.assertEqual(allocator.allocations, 1)
        self.assertEqual(allocator.releases, 1)
        self.assertEqual(allocator.live_handles, 0)

    def test_concurrent_calls_share_allocator(self):
        problem_bytes = pack(week_problem())

        def run(_):
            return solve(problem_bytes, 5, 600_000, config=SMALL_GA, seed=7, allocator=self.allocator)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(run, range(8)))

        self.assertEqual(len(set(results)), 1)
        self.assertEqual(self.allocator.allocations, 8)
        self.assertEqual(self.allocator.live_handles, 0)

    def test_fitness_value_reported(self):
        data = solve(pack(single_activity_problem()), 3, 1000, config=SMALL_GA)
        result = decode_result(data)
        fitness = FitnessValue(result['score'], result['violation'])
        self.assertEqual(fitness.feasible, result['feasible'])


if __name__ == '__main__':
    unittest.main()
