"""
Unit tests for the circuit breaker
Tests per-destination failure gating with an injected clock
"""

from relay.forwarding.circuit_breaker import CircuitBreaker, CircuitState

TARGET = "http://localhost:4000/hooks"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestCircuitBreaker:
    """Test circuit breaker state transitions"""

    def test_new_target_is_closed(self):
        """Test that an unseen target starts closed"""
        breaker = CircuitBreaker()

        assert breaker.state(TARGET) is CircuitState.CLOSED
        assert breaker.is_open(TARGET) is False
        assert breaker.failure_count(TARGET) == 0

    def test_opens_at_threshold(self):
        """Test that the fifth consecutive failure opens the circuit"""
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=FakeClock())

        for _ in range(4):
            breaker.record_failure(TARGET)
        assert breaker.is_open(TARGET) is False

        breaker.record_failure(TARGET)
        assert breaker.is_open(TARGET) is True
        assert breaker.state(TARGET) is CircuitState.OPEN

    def test_half_open_after_cooldown(self):
        """Test that the circuit admits a trial request once the cooldown elapses"""
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=clock)
        for _ in range(5):
            breaker.record_failure(TARGET)

        clock.now += 29.9
        assert breaker.is_open(TARGET) is True

        clock.now += 0.2
        assert breaker.state(TARGET) is CircuitState.HALF_OPEN
        assert breaker.is_open(TARGET) is False

    def test_failed_trial_reopens(self):
        """Test that a failure while half-open re-opens for a full cooldown"""
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=clock)
        for _ in range(5):
            breaker.record_failure(TARGET)

        clock.now += 31
        breaker.record_failure(TARGET)

        assert breaker.is_open(TARGET) is True
        assert breaker.failure_count(TARGET) == 6

    def test_success_resets(self):
        """Test that a success closes the circuit and clears the count"""
        breaker = CircuitBreaker(clock=FakeClock())
        for _ in range(7):
            breaker.record_failure(TARGET)

        breaker.record_success(TARGET)

        assert breaker.state(TARGET) is CircuitState.CLOSED
        assert breaker.failure_count(TARGET) == 0

    def test_targets_are_isolated(self):
        """Test that failures against one target never affect another"""
        breaker = CircuitBreaker(clock=FakeClock())
        for _ in range(5):
            breaker.record_failure(TARGET)

        assert breaker.is_open(TARGET) is True
        assert breaker.is_open("http://localhost:5000/other") is False

    def test_half_open_admits_single_trial(self):
        """Test that only one request passes while a half-open trial is outstanding"""
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=clock)
        for _ in range(5):
            breaker.record_failure(TARGET)
        clock.now += 31

        assert breaker.is_open(TARGET) is False
        assert breaker.is_open(TARGET) is True
        assert breaker.is_open(TARGET) is True

        breaker.record_success(TARGET)

        assert breaker.state(TARGET) is CircuitState.CLOSED
        assert breaker.is_open(TARGET) is False
        assert breaker.is_open(TARGET) is False

    def test_failed_trial_rejects_until_next_cooldown(self):
        """Test that a failed half-open trial closes the gate for another full cooldown"""
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=clock)
        for _ in range(5):
            breaker.record_failure(TARGET)
        clock.now += 31

        assert breaker.is_open(TARGET) is False
        breaker.record_failure(TARGET)
        assert breaker.is_open(TARGET) is True

        clock.now += 31
        assert breaker.is_open(TARGET) is False
        assert breaker.is_open(TARGET) is True

    def test_abandoned_trial_expires(self):
        """Test that a trial which never reports back stops blocking after a cooldown"""
        clock = FakeClock()
        breaker = CircuitBreaker(threshold=5, cooldown_seconds=30, clock=clock)
        for _ in range(5):
            breaker.record_failure(TARGET)
        clock.now += 31

        assert breaker.is_open(TARGET) is False
        clock.now += 10
        assert breaker.is_open(TARGET) is True

        clock.now += 25
        assert breaker.is_open(TARGET) is False
