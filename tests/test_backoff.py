import unittest

from tuna_relay.lib.backoff import BackoffScheduler


class TestBackoffScheduler(unittest.TestCase):
    def test_first_attempt_uses_initial_delay(self) -> None:
        b = BackoffScheduler(initial_delay=1000, max_delay=30000, factor=1.5)
        self.assertEqual(b.next_delay(1), 1000)

    def test_delays_grow_by_factor(self) -> None:
        b = BackoffScheduler(initial_delay=1000, max_delay=30000, factor=1.5)
        self.assertEqual([b.next_delay(n) for n in (1, 2, 3)], [1000, 1500, 2250])

    def test_delay_is_capped(self) -> None:
        b = BackoffScheduler(initial_delay=1000, max_delay=30000, factor=1.5)
        self.assertEqual(b.next_delay(10), 30000)
        self.assertEqual(b.next_delay(5000), 30000)

    def test_non_decreasing_and_within_bounds(self) -> None:
        b = BackoffScheduler(initial_delay=0.5, max_delay=20, factor=2)
        delays = [b.next_delay(n) for n in range(1, 40)]
        self.assertEqual(delays, sorted(delays))
        self.assertTrue(all(0.5 <= d <= 20 for d in delays))

    def test_factor_one_is_constant(self) -> None:
        b = BackoffScheduler(initial_delay=2, max_delay=10, factor=1)
        self.assertEqual({b.next_delay(n) for n in range(1, 10)}, {2})

    def test_invalid_arguments(self) -> None:
        with self.assertRaises(ValueError):
            BackoffScheduler(initial_delay=0)
        with self.assertRaises(ValueError):
            BackoffScheduler(factor=0.5)
        with self.assertRaises(ValueError):
            BackoffScheduler(initial_delay=10, max_delay=5)
        with self.assertRaises(ValueError):
            BackoffScheduler().next_delay(0)


if __name__ == "__main__":
    unittest.main()
