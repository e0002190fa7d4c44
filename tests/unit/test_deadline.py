import math

from conftest import FakeClock

from school_pipeline.common.deadline import Deadline


def test_unbounded():
    d = Deadline.none()
    assert d.remaining() == math.inf
    assert not d.expired
    assert d.cap(5.0) == 5.0


def test_expires_with_clock():
    clock = FakeClock()
    d = Deadline(10, clock=clock)
    assert d.cap(30.0) == 10.0
    clock.advance(7)
    assert d.remaining() == 3.0
    clock.advance(3)
    assert d.expired
    assert d.cap(2.0) == 0.0

