import os
import tempfile
import time
import unittest

from sales_invoice.tempfiles import CleanupWorker, TempFileStore, remove_quietly, safe_filename


class TempFileStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.directory = os.path.join(self.tmp.name, "temp_invoices")
        self.now = 10_000.0
        self.store = TempFileStore(self.directory, max_age_s=3600, clock=lambda: self.now)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_save_read_and_remove(self) -> None:
        self.store.save("invoice-INV-1.pdf", b"%PDF-1.4")

        self.assertEqual(self.store.read("invoice-INV-1.pdf"), b"%PDF-1.4")
        self.assertTrue(self.store.remove("invoice-INV-1.pdf"))
        self.assertIsNone(self.store.read("invoice-INV-1.pdf"))

    def test_removing_a_missing_file_is_not_an_error(self) -> None:
        self.assertFalse(self.store.remove("invoice-gone.pdf"))
        self.assertFalse(remove_quietly(os.path.join(self.directory, "nothing.pdf")))

    def test_rejects_unsafe_names(self) -> None:
        self.assertFalse(safe_filename("../config.json"))
        self.assertFalse(safe_filename("a/b.pdf"))
        self.assertFalse(safe_filename(".hidden"))
        self.assertTrue(safe_filename("invoice-INV-12.pdf"))
        self.assertIsNone(self.store.read("../sales_database.json"))
        with self.assertRaises(ValueError):
            self.store.save("../escape.pdf", b"x")

    def test_cleanup_removes_only_expired_files(self) -> None:
        old_path = self.store.save("old.pdf", b"old")
        self.store.save("new.pdf", b"new")
        os.utime(old_path, (self.now - 7200, self.now - 7200))
        os.utime(os.path.join(self.directory, "new.pdf"), (self.now - 60, self.now - 60))

        removed = self.store.cleanup_expired()

        self.assertEqual(removed, ["old.pdf"])
        self.assertEqual(os.listdir(self.directory), ["new.pdf"])

    def test_cleanup_without_directory_does_nothing(self) -> None:
        self.assertEqual(self.store.cleanup_expired(), [])

    def test_remove_later_deletes_file(self) -> None:
        self.store.save("later.pdf", b"x")

        timer = self.store.remove_later("later.pdf", 0.01)
        timer.join(timeout=5)

        self.assertIsNone(self.store.read("later.pdf"))

    def test_cleanup_worker_runs_on_interval(self) -> None:
        path = self.store.save("stale.pdf", b"x")
        os.utime(path, (self.now - 7200, self.now - 7200))
        worker = CleanupWorker(self.store, interval_s=0.01)

        worker.start()
        deadline = time.time() + 5
        while os.path.exists(path) and time.time() < deadline:
            time.sleep(0.01)
        worker.stop()
        worker.join(timeout=5)

        self.assertFalse(os.path.exists(path))
        self.assertFalse(worker.is_alive())


if __name__ == "__main__":
    unittest.main()
