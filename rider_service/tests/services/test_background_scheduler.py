from rider_service import scheduler as background
from rider_service.core.config import get_settings
from rider_service.services.stall_reminder_service import StallReminderScheduler


def test_reminder_job_registered_once(reminders, session_factory):
    stall = StallReminderScheduler(session_factory, offsets_days=[1, 3, 7])
    try:
        sched = background.init_scheduler(get_settings(), reminders, stall)
        assert sched.running
        assert background.init_scheduler(get_settings(), reminders, stall) is sched

        job = sched.get_job("send_due_reminders")
        assert job is not None
        assert job.func == background.poll_reminders
        assert list(job.args) == [reminders, stall]
    finally:
        background.shutdown_scheduler()

    assert background.get_scheduler() is None


class BrokenPoller:
    def run_due(self):
        raise RuntimeError("database unavailable")


class CountingPoller:
    def __init__(self, sent):
        self.sent = sent
        self.calls = 0

    def run_due(self):
        self.calls += 1
        return self.sent


def test_failing_poller_does_not_stop_the_others():
    contracts = CountingPoller(sent=2)

    assert background.poll_reminders(BrokenPoller(), contracts) == 2
    assert contracts.calls == 1
