import pytest

from app.core import scheduler as scheduler_module


class StubQueue:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def recover_interrupted(self):
        self.calls += 1
        if self.error:
            raise self.error
        return 2


def test_scheduler_is_disabled_in_tests():
    scheduler_module.start_scheduler(StubQueue())
    assert scheduler_module.scheduler.running is False


@pytest.mark.parametrize("error", [None, ConnectionError("redis down")])
def test_recovery_job_never_raises(error):
    queue = StubQueue(error=error)
    scheduler_module.recover_interrupted_grading_jobs(queue)
    assert queue.calls == 1
