from brand_ingest.utils.budget import TimeBudget


def test_budget_counts_down(fake_clock):
    budget = TimeBudget.start(10.0, clock=fake_clock)
    assert budget.remaining() == 10.0

    fake_clock.advance(3.5)

    assert budget.remaining() == 6.5
    assert budget.elapsed() == 3.5
    assert not budget.expired()

def test_budget_never_negative(fake_clock):
    budget = TimeBudget.start(2.0, clock=fake_clock)
    fake_clock.advance(5)
    assert budget.remaining() == 0.0
    assert budget.expired()

def test_has_at_least_is_inclusive(fake_clock):
    budget = TimeBudget.start(10.0, clock=fake_clock)
    fake_clock.advance(7)
    assert budget.has_at_least(3.0)
    assert not budget.has_at_least(3.01)

def test_sub_timeout_ms_caps_to_remaining(fake_clock):
    budget = TimeBudget.start(10.0, clock=fake_clock)
    assert budget.sub_timeout_ms(3000) == 3000

    fake_clock.advance(8.5)
    assert budget.sub_timeout_ms(3000) == 1500

    fake_clock.advance(10)
    assert budget.sub_timeout_ms(3000) == 1

def test_sub_timeout_seconds(fake_clock):
    budget = TimeBudget.start(10.0, clock=fake_clock)
    fake_clock.advance(9)
    assert budget.sub_timeout(5.0) == 1.0
