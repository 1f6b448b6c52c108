from partyfinder.services.debounce import ARMED, FIRING, IDLE, DebouncedTask


def make_task(spawner, action, **kwargs):
    return DebouncedTask(action, 0.25, spawn=spawner, sleep=lambda s: None, **kwargs)


def test_burst_of_arms_runs_action_once(spawner):
    runs = []
    task = make_task(spawner, lambda: runs.append(1))

    assert task.arm() is True
    for _ in range(9):
        assert task.arm() is False
    assert task.state == ARMED
    assert len(spawner.calls) == 1

    spawner.run_all()
    assert runs == [1]
    assert task.state == IDLE


def test_can_arm_again_after_firing(spawner):
    runs = []
    task = make_task(spawner, lambda: runs.append(1))
    task.arm()
    spawner.run_all()
    task.arm()
    spawner.run_all()
    assert runs == [1, 1]


def test_cancel_discards_pending_run(spawner):
    runs = []
    task = make_task(spawner, lambda: runs.append(1))
    task.arm()
    assert task.cancel() is True
    spawner.run_all()
    assert runs == []
    assert task.cancel() is False


def test_flush_runs_pending_action_immediately(spawner):
    runs = []
    task = make_task(spawner, lambda: runs.append(1))
    assert task.flush() is False
    task.arm()
    assert task.flush() is True
    assert runs == [1]
    # the stale timer must not fire a second time
    spawner.run_all()
    assert runs == [1]


def test_arm_while_firing_queues_one_follow_up(spawner):
    runs = []
    holder = {}

    def action():
        runs.append(holder['task'].state)
        if len(runs) == 1:
            holder['task'].arm()
            holder['task'].arm()

    task = make_task(spawner, action)
    holder['task'] = task
    task.arm()
    spawner.run_all()
    assert runs == [FIRING]
    assert task.state == ARMED
    spawner.run_all()
    assert runs == [FIRING, FIRING]
    assert task.state == IDLE


def test_failing_action_is_logged_and_task_recovers(spawner, caplog):
    def boom():
        raise RuntimeError('disk on fire')

    task = make_task(spawner, boom, name='boom')
    task.arm()
    spawner.run_all()
    assert task.state == IDLE
    assert 'disk on fire' in caplog.text
