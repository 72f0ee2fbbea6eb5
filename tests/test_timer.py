"""
Tests for the countdown timer.

Remaining time is recomputed from the start timestamp on every read, never
goes up, never goes negative, and expiry fires exactly once.
"""

from unittest.mock import Mock

from examiner.timer import CountdownTimer, format_duration


class TestRemainingTime:
    """Remaining time follows the wall clock from an absolute start."""

    def test_full_duration_at_start(self, clock):
        """A fresh timer reports the whole duration."""
        timer = CountdownTimer(45, clock=clock)
        timer.start(clock.now())

        assert timer.remaining_seconds == 45 * 60
        assert timer.elapsed_seconds == 0

    def test_recomputed_from_start_time(self, clock):
        """Ten minutes after the start, 35 minutes remain."""
        timer = CountdownTimer(45, clock=clock)
        timer.start(clock.now())

        clock.advance(minutes=10)

        assert timer.remaining_seconds == 35 * 60
        assert timer.elapsed_seconds == 10 * 60

    def test_resume_from_earlier_start(self, clock):
        """Starting from a timestamp in the past counts the time already spent."""
        started_at = clock.now()
        clock.advance(minutes=20)

        timer = CountdownTimer(45, clock=clock)
        timer.start(started_at)

        assert timer.remaining_seconds == 25 * 60

    def test_partial_seconds_are_truncated(self, clock):
        """Half a second in, the display still shows whole seconds."""
        timer = CountdownTimer(1, clock=clock)
        timer.start(clock.now())

        clock.advance(seconds=0.5)

        assert timer.remaining_seconds == 59

    def test_never_negative(self, clock):
        """Long past the deadline the timer sits at zero."""
        timer = CountdownTimer(1, clock=clock)
        timer.start(clock.now())

        clock.advance(minutes=30)

        assert timer.remaining_seconds == 0

    def test_clock_going_backwards_does_not_add_time(self, clock):
        """A wall clock correction backwards cannot buy extra time."""
        timer = CountdownTimer(45, clock=clock)
        timer.start(clock.now())
        clock.advance(minutes=10)
        assert timer.remaining_seconds == 35 * 60

        clock.advance(minutes=-5)

        assert timer.remaining_seconds == 35 * 60

    def test_frozen_before_start(self, clock):
        """Before start the timer neither counts down nor expires."""
        on_expire = Mock()
        timer = CountdownTimer(1, clock=clock, on_expire=on_expire)

        clock.advance(minutes=5)
        timer.tick()

        assert timer.remaining_seconds == 60
        on_expire.assert_not_called()

    def test_frozen_after_stop(self, clock):
        """After stop the remaining time no longer moves."""
        timer = CountdownTimer(45, clock=clock)
        timer.start(clock.now())
        clock.advance(minutes=5)
        timer.stop()

        clock.advance(minutes=5)

        assert timer.remaining_seconds == 40 * 60


class TestExpiry:
    """Expiry fires once, and only once."""

    def test_fires_once(self, clock):
        """Repeated ticks after the deadline do not fire again."""
        on_expire = Mock()
        timer = CountdownTimer(1, clock=clock, on_expire=on_expire)
        timer.start(clock.now())

        clock.advance(seconds=61)
        timer.tick()
        timer.tick()
        clock.advance(seconds=10)
        timer.tick()

        on_expire.assert_called_once()
        assert timer.expired is True
        assert timer.running is False

    def test_does_not_fire_early(self, clock):
        """One second before the deadline nothing happens."""
        on_expire = Mock()
        timer = CountdownTimer(1, clock=clock, on_expire=on_expire)
        timer.start(clock.now())

        clock.advance(seconds=59)
        assert timer.tick() == 1

        on_expire.assert_not_called()

    def test_missing_start_time_expires_immediately(self, clock):
        """An unknown start time is treated as time already up."""
        on_expire = Mock()
        timer = CountdownTimer(45, clock=clock, on_expire=on_expire)

        timer.start(None)

        on_expire.assert_called_once()
        assert timer.remaining_seconds == 0

    def test_stop_prevents_expiry(self, clock):
        """A stopped timer never fires, even past the deadline."""
        on_expire = Mock()
        timer = CountdownTimer(1, clock=clock, on_expire=on_expire)
        timer.start(clock.now())
        timer.stop()

        clock.advance(minutes=5)
        timer.tick()

        on_expire.assert_not_called()


class TestFormatting:
    """Human-readable time strings."""

    def test_format_remaining(self, clock):
        """Remaining time renders as HH:MM:SS."""
        timer = CountdownTimer(90, clock=clock)
        timer.start(clock.now())
        clock.advance(seconds=75)

        assert timer.format_remaining() == "01:28:45"

    def test_format_duration_minutes_only(self):
        """Durations under an hour show minutes."""
        assert format_duration(45) == "45m"

    def test_format_duration_whole_hours(self):
        """Whole hours drop the minutes."""
        assert format_duration(60) == "1h"
        assert format_duration(120) == "2h"

    def test_format_duration_hours_and_minutes(self):
        """Minutes are zero-padded after hours."""
        assert format_duration(65) == "1h 05m"
        assert format_duration(90) == "1h 30m"
