from __future__ import annotations

from unittest.mock import Mock, patch

from metrics_ingest.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True

    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch("metrics_ingest.services.progress.is_tty_enabled", return_value=True), \
             patch("metrics_ingest.services.progress.tqdm") as mock_tqdm:

            tracker = ProgressTracker(11)

            assert tracker.total == 11
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=11,
                desc="Importing tables",
                unit="table",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch("metrics_ingest.services.progress.is_tty_enabled", return_value=False):
            tracker = ProgressTracker(5, description="Test")
            assert tracker.enabled is False
            assert tracker.pbar is None
            # all calls are no-ops without a bar
            tracker.start("leads_weekly")
            tracker.finish()
            tracker.set_postfix(inserted=1)
            tracker.close()
            assert tracker.current == 1

    def test_steps_update_bar(self):
        mock_pbar = Mock()
        with patch("metrics_ingest.services.progress.is_tty_enabled", return_value=True), \
             patch("metrics_ingest.services.progress.tqdm", return_value=mock_pbar):

            with ProgressTracker(2) as tracker:
                tracker.start("leads_weekly")
                mock_pbar.set_description.assert_called_with("Importing tables (leads_weekly)")
                tracker.finish()
                mock_pbar.update.assert_called_once_with(1)
                tracker.set_postfix(inserted=3)
                mock_pbar.set_postfix.assert_called_once_with(inserted=3)

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
