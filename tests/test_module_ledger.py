from conftest import TODAY


def test_set_status_upserts_one_row_per_day(ledger, repo):
    ledger.set_status("timedriver", TODAY, True, "BM")
    ledger.set_status("timedriver", TODAY, True, "AK")
    rows = ledger.get_statuses(TODAY)
    assert len(rows) == 1
    assert rows[0].done_by == "AK"
    assert rows[0].done_at is not None


def test_marking_not_done_clears_stamp(ledger):
    ledger.set_status("future", TODAY, True, "BM")
    row = ledger.set_status("future", TODAY, False)
    assert row.is_done is False
    assert row.done_at is None
    assert row.done_by is None
    assert not ledger.is_done("future", TODAY)


def test_statuses_are_scoped_by_date(ledger):
    ledger.set_status("upgrade", TODAY, True)
    ledger.set_status("upgrade", "2025-06-11", False)
    assert ledger.is_done("upgrade", TODAY)
    assert not ledger.is_done("upgrade", "2025-06-11")
    assert not ledger.is_done("quality", TODAY)
    assert [r.module_name for r in ledger.get_statuses(TODAY)] == ["upgrade"]
