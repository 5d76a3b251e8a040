import threading

import pytest

from dao.errors import AlreadySpentError
from dao.nullifiers import NullifierLedger


class TestNullifierLedger:

    def test_spend_marks_nullifier(self):
        ledger = NullifierLedger()
        assert not ledger.is_spent(42)
        ledger.spend(42)
        assert ledger.is_spent(42)
        assert 42 in ledger
        assert len(ledger) == 1

    def test_double_spend_rejected(self):
        ledger = NullifierLedger()
        ledger.spend(42)
        with pytest.raises(AlreadySpentError):
            ledger.spend(42)
        assert len(ledger) == 1

    def test_release(self):
        ledger = NullifierLedger()
        ledger.spend(42)
        ledger.release(42)
        assert not ledger.is_spent(42)
        ledger.spend(42)

    def test_iteration_is_sorted(self):
        ledger = NullifierLedger()
        for n in [3, 1, 2]:
            ledger.spend(n)
        assert list(ledger) == [1, 2, 3]

    def test_concurrent_spend_single_winner(self):
        ledger = NullifierLedger()
        barrier = threading.Barrier(16)
        outcomes = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                ledger.spend(7)
                result = "spent"
            except AlreadySpentError:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("spent") == 1
        assert outcomes.count("rejected") == 15
