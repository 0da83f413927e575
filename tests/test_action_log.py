from zooverse.action_log import ActionLog


def record(log, agent_id="a1", action="idle"):
    return log.record(agent_id=agent_id, agent_name="Pip", action=action, success=True, message="ok")


def test_log_is_bounded_and_filterable():
    log = ActionLog(max_entries=3, clock=lambda: 5.0)
    for action in ("idle", "eating", "drinking"):
        record(log, action=action)
    record(log, agent_id="a2", action="sleeping")

    assert len(log) == 3
    assert [e.action for e in log.recent()] == ["eating", "drinking", "sleeping"]
    assert [e.action for e in log.recent(agent_id="a1")] == ["eating", "drinking"]
    assert log.recent(limit=1)[0].timestamp == 5.0

    log.clear()
    assert len(log) == 0


def test_subscribers_receive_entries_and_can_leave():
    log = ActionLog()
    received = []

    def broken(entry):
        raise RuntimeError("listener bug")

    log.subscribe(broken)
    unsubscribe = log.subscribe(received.append)

    record(log)
    unsubscribe()
    record(log)

    assert len(received) == 1
    assert len(log) == 2
